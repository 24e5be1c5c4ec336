"""Tests for the outbox state machine and retry backoff."""

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.entities import (
    MAX_RETRY_COUNT,
    OUTBOX_CHANNEL_EMAIL,
    OUTBOX_STATUS_FAILED,
    OUTBOX_STATUS_SENT,
    OutboxRecord,
    compute_backoff_delay,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _email_record(**overrides) -> OutboxRecord:
    values = {
        "id": 1,
        "channel": OUTBOX_CHANNEL_EMAIL,
        "event_type": "PROJECT_APPROVED",
        "target_user_id": 7,
        "title": "Approved",
        "content": "Your project was approved",
    }
    values.update(overrides)
    return OutboxRecord(**values)


@pytest.mark.parametrize(
    ("retry_count", "expected"),
    [
        (0, timedelta(minutes=1)),
        (1, timedelta(minutes=2)),
        (4, timedelta(minutes=16)),
        (10, timedelta(hours=17, minutes=4)),
        (11, timedelta(hours=24)),
        (500, timedelta(hours=24)),
    ],
)
def test_backoff_doubles_and_caps_at_one_day(retry_count, expected):
    assert compute_backoff_delay(retry_count) == expected


def test_backoff_rejects_negative_counts():
    with pytest.raises(ValueError):
        compute_backoff_delay(-1)


def test_failed_attempts_schedule_retries_until_the_ceiling():
    record = _email_record()

    for attempt in range(1, MAX_RETRY_COUNT):
        record.mark_failed("503", NOW)
        assert record.status == OUTBOX_STATUS_FAILED
        assert record.retry_count == attempt
        assert record.next_retry_at == NOW + compute_backoff_delay(attempt)
        assert record.is_retryable

    record.mark_failed("503", NOW)
    assert record.retry_count == MAX_RETRY_COUNT
    assert record.next_retry_at is None
    assert record.is_terminal
    assert not record.is_retryable

    # Further failures never push the counter past the ceiling.
    record.mark_failed("still down", NOW)
    assert record.retry_count == MAX_RETRY_COUNT
    assert record.error_message == "still down"


def test_mark_sent_clears_retry_state():
    record = _email_record()
    record.mark_failed("timeout", NOW)

    record.mark_sent(NOW + timedelta(minutes=3))

    assert record.status == OUTBOX_STATUS_SENT
    assert record.sent_at == NOW + timedelta(minutes=3)
    assert record.next_retry_at is None
    assert record.error_message is None
    assert record.is_terminal


def test_permanent_failure_is_terminal_immediately():
    record = _email_record()

    record.mark_permanently_failed("no address")

    assert record.status == OUTBOX_STATUS_FAILED
    assert record.retry_count == MAX_RETRY_COUNT
    assert record.next_retry_at is None
    assert record.is_terminal
