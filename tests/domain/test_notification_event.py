"""Tests for event validation and the static event catalog."""

import pytest

from app.domain.entities import (
    BATCH_GROUPS,
    EVENT_CATEGORIES,
    IMMEDIATE_EMAIL_EVENTS,
    EMAIL_MODE_IMMEDIATE,
    InboxCategory,
    NotificationEvent,
    NotificationEventType,
    NotificationPreference,
    NotificationValidationError,
)


def _create(**overrides):
    values = {
        "event_type": "DM_NEW_MESSAGE",
        "target_user_ids": [3, 1, 3, 2, 1],
        "title": "  New message  ",
        "content": "Hello there",
    }
    values.update(overrides)
    return NotificationEvent.create(**values)


def test_create_collapses_duplicate_recipients_in_order():
    event = _create()

    assert event.event_type is NotificationEventType.DM_NEW_MESSAGE
    assert event.target_user_ids == (3, 1, 2)
    assert event.title == "New message"
    assert event.category is InboxCategory.DM


@pytest.mark.parametrize(
    "overrides",
    [
        {"event_type": "NOT_A_REAL_EVENT"},
        {"target_user_ids": []},
        {"title": "   "},
        {"title": "x" * 201},
        {"content": ""},
        {"content": "x" * 2001},
    ],
)
def test_create_rejects_invalid_events(overrides):
    with pytest.raises(NotificationValidationError):
        _create(**overrides)


def test_validation_error_is_a_value_error():
    assert issubclass(NotificationValidationError, ValueError)


def test_recipient_dedupe_key_is_scoped_by_user_and_channel():
    event = _create(dedupe_key="dm:42")

    assert event.recipient_dedupe_key(3, "EMAIL") == "dm:42:3:EMAIL"
    assert event.recipient_dedupe_key(3, "INBOX") == "dm:42:3:INBOX"
    assert _create().recipient_dedupe_key(3, "EMAIL") is None


def test_every_event_type_has_a_category():
    assert set(EVENT_CATEGORIES) == set(NotificationEventType)


def test_allow_listed_events_are_never_batchable():
    assert not IMMEDIATE_EMAIL_EVENTS & set(BATCH_GROUPS)


def test_preference_mode_for_unknown_group_is_immediate():
    preference = NotificationPreference(id=None, user_id=1)

    assert preference.mode_for("dm") == "BATCHED"
    assert preference.mode_for("unknown") == EMAIL_MODE_IMMEDIATE
