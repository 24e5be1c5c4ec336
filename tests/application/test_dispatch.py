"""Tests for event fan-out, dedupe and email routing."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.application.use_cases.notifications import update_preferences
from app.domain.entities import (
    NotificationEvent,
    NotificationPersistenceError,
)
from app.infrastructure.models import InboxItemModel, NotificationOutboxModel
from app.infrastructure.repositories import OutboxRepository


def _event(event_type, recipients, **overrides):
    values = {
        "event_type": event_type,
        "target_user_ids": recipients,
        "title": "Title",
        "content": "Content",
    }
    values.update(overrides)
    return NotificationEvent.create(**values)


def _rows(session, **filters):
    query = session.query(NotificationOutboxModel).filter_by(**filters)
    return query.order_by(NotificationOutboxModel.id).all()


def test_fan_out_writes_inbox_and_email_rows_per_recipient(
    service, session, make_user, transport
):
    users = [make_user(f"User {i}", f"user{i}@example.com") for i in range(3)]
    event = _event(
        "PROJECT_APPROVED",
        [user.id for user in users],
        related_object_type="PROJECT",
        related_object_id="42",
        dedupe_key="project:42:approved",
    )

    result = service.dispatch(event)

    assert result.inbox_count == 3
    assert result.email_count == 3
    assert result.failed_user_ids == []
    assert session.query(InboxItemModel).count() == 3

    inbox_rows = _rows(session, channel="INBOX")
    assert [row.status for row in inbox_rows] == ["SENT"] * 3
    assert all(row.sent_at is not None for row in inbox_rows)

    email_rows = _rows(session, channel="EMAIL")
    assert [row.status for row in email_rows] == ["SENT"] * 3
    assert {row.dedupe_key for row in email_rows} == {
        f"project:42:approved:{user.id}:EMAIL" for user in users
    }
    assert sorted(message.to for message in transport.sent) == [
        "user0@example.com",
        "user1@example.com",
        "user2@example.com",
    ]


def test_redispatch_with_same_dedupe_key_creates_nothing(service, session, make_user):
    users = [make_user(f"User {i}", f"user{i}@example.com") for i in range(3)]
    event = _event(
        "PROJECT_APPROVED", [user.id for user in users], dedupe_key="project:7"
    )
    service.dispatch(event)

    second = service.dispatch(event)

    assert second.inbox_count == 0
    assert second.email_count == 0
    assert session.query(InboxItemModel).count() == 3
    assert session.query(NotificationOutboxModel).count() == 6


def test_skip_email_suppresses_the_email_channel(service, session, make_user, transport):
    user = make_user()

    result = service.dispatch(
        _event("PROJECT_APPROVED", [user.id], skip_email=True)
    )

    assert result.inbox_count == 1
    assert result.email_count == 0
    assert _rows(session, channel="EMAIL") == []
    assert transport.sent == []


def test_batched_events_are_coalesced_into_one_digest(
    service, session, make_user, scheduler, transport
):
    user = make_user()
    for index in range(3):
        result = service.dispatch(
            _event("DM_NEW_MESSAGE", [user.id], title=f"Message {index}")
        )
        assert result.inbox_count == 1
        assert result.email_count == 1

    assert session.query(InboxItemModel).count() == 3
    assert _rows(session, channel="EMAIL") == []

    scheduler.advance(service.settings.email_dm_batch_seconds)

    email_rows = _rows(session, channel="EMAIL")
    assert len(email_rows) == 1
    assert email_rows[0].status == "SENT"
    assert email_rows[0].title == "3 new notifications"
    assert len(transport.sent) == 1
    assert "1. Message 0: Content" in transport.sent[0].text_body


def test_allow_listed_events_bypass_batching(service, session, make_user, scheduler):
    user = make_user()

    service.dispatch(_event("TOKEN_TRANSFER_APPROVED", [user.id]))

    assert len(_rows(session, channel="EMAIL")) == 1
    assert scheduler.pending() == []


def test_immediate_preference_sends_batchable_events_right_away(
    service, session, make_user, scheduler
):
    user = make_user()
    update_preferences(session, user.id, dm_email_mode="IMMEDIATE")

    service.dispatch(_event("DM_NEW_MESSAGE", [user.id]))

    assert len(_rows(session, channel="EMAIL", status="SENT")) == 1
    assert scheduler.pending() == []


def test_disabled_email_preference_is_still_delivered(
    service, session, make_user, transport, caplog
):
    user = make_user()
    update_preferences(session, user.id, email_enabled=False)

    with caplog.at_level("INFO"):
        result = service.dispatch(_event("PROJECT_APPROVED", [user.id]))

    assert result.email_count == 1
    assert len(transport.sent) == 1
    assert "disabled email notifications" in caplog.text


def test_recipient_without_email_gets_inbox_and_terminal_failure(
    service, session, make_user, transport
):
    user = make_user(email=None)

    result = service.dispatch(_event("PROJECT_REJECTED", [user.id]))

    assert result.inbox_count == 1
    email = _rows(session, channel="EMAIL")[0]
    assert email.status == "FAILED"
    assert email.retry_count == 5
    assert email.next_retry_at is None
    assert transport.attempts == 0


def test_failed_immediate_send_is_scheduled_for_retry(
    service, session, make_user, transport, clock
):
    transport.fail_forever = True
    user = make_user()

    service.dispatch(_event("PROJECT_APPROVED", [user.id]))

    record = OutboxRepository(session).list_retryable_failed_emails(
        created_since=clock() - timedelta(days=1), limit=10
    )[0]
    assert record.retry_count == 1
    assert record.next_retry_at == clock() + timedelta(minutes=2)
    assert "503" in record.error_message


def test_persistence_failure_for_every_recipient_raises(
    service, make_user, monkeypatch
):
    user = make_user()

    def broken(self, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(OutboxRepository, "create_delivery_unit", broken)

    with pytest.raises(NotificationPersistenceError):
        service.dispatch(_event("ANNOUNCEMENT", [user.id]))


def test_persistence_failure_is_isolated_per_recipient(
    service, session, make_user, monkeypatch
):
    first = make_user("First", "first@example.com")
    second = make_user("Second", "second@example.com")
    original = OutboxRepository.create_delivery_unit

    def flaky(self, *, inbox_item, records):
        if inbox_item is not None and inbox_item.user_id == first.id:
            raise OperationalError("INSERT", {}, Exception("locked"))
        return original(self, inbox_item=inbox_item, records=records)

    monkeypatch.setattr(OutboxRepository, "create_delivery_unit", flaky)

    result = service.dispatch(_event("ANNOUNCEMENT", [first.id, second.id]))

    assert result.failed_user_ids == [first.id]
    assert result.inbox_count == 1
    assert session.query(InboxItemModel).filter_by(user_id=second.id).count() == 1


def test_redispatch_after_digest_window_does_not_email_again(
    service, session, make_user, scheduler, transport
):
    user = make_user()
    event = _event("DM_NEW_MESSAGE", [user.id], title="Hi", dedupe_key="dm:99")
    window = service.settings.email_dm_batch_seconds

    service.dispatch(event)
    scheduler.advance(window)
    second = service.dispatch(event)
    scheduler.advance(window)

    assert second.inbox_count == 0
    assert second.email_count == 0
    assert scheduler.pending() == []
    assert len(transport.sent) == 1
    assert len(_rows(session, channel="EMAIL")) == 1
    assert session.query(InboxItemModel).count() == 1


def test_unrecorded_digest_keeps_its_items_for_the_sweeper(
    service, session, make_user, scheduler, transport, monkeypatch
):
    user = make_user()
    original = OutboxRepository.create
    calls = []

    def flaky(self, record):
        calls.append(record.title)
        if len(calls) == 1:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return original(self, record)

    for index in range(2):
        service.dispatch(
            _event(
                "DM_NEW_MESSAGE",
                [user.id],
                title=f"Message {index}",
                dedupe_key=f"dm:{index}",
            )
        )
    monkeypatch.setattr(OutboxRepository, "create", flaky)

    scheduler.advance(service.settings.email_dm_batch_seconds)

    assert calls[0] == "2 new notifications"
    pending = _rows(session, channel="EMAIL", status="PENDING")
    assert [row.title for row in pending] == ["Message 0", "Message 1"]
    assert [row.dedupe_key for row in pending] == [
        f"dm:0:{user.id}:EMAIL",
        f"dm:1:{user.id}:EMAIL",
    ]
    assert transport.sent == []

    monkeypatch.setattr(OutboxRepository, "create", original)
    result = service.run_sweep()

    assert result.sent == 2
    assert len(transport.sent) == 2
