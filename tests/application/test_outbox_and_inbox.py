"""Tests for reconciliation queries, stats, inbox reads and preferences."""

from datetime import timedelta

import pytest

from app.application.use_cases.notifications import (
    get_outbox_stats,
    get_preferences,
    get_unread_counts,
    list_inbox,
    list_outbox,
    mark_all_read,
    mark_item_read,
    mark_items_read,
    update_preferences,
)
from app.domain.entities import (
    NotificationEvent,
    NotificationValidationError,
    OutboxRecord,
)
from app.infrastructure.repositories import OutboxFilters, OutboxRepository


def _dispatch(service, event_type, recipients, **overrides):
    values = {
        "event_type": event_type,
        "target_user_ids": recipients,
        "title": "Title",
        "content": "Content",
    }
    values.update(overrides)
    return service.dispatch(NotificationEvent.create(**values))


def test_stats_partition_the_ledger(service, session, make_user, transport, clock):
    ok = make_user("Ok", "ok@example.com")
    missing = make_user("Missing", None)
    _dispatch(service, "PROJECT_APPROVED", [ok.id, missing.id])
    transport.fail_forever = True
    _dispatch(service, "ANNOUNCEMENT", [ok.id], skip_email=False)

    stats = get_outbox_stats(session)

    assert stats.total == 6
    assert sum(stats.by_status.values()) == stats.total
    assert stats.by_status == {"PENDING": 0, "SENT": 4, "FAILED": 2}
    assert stats.by_channel["INBOX"]["total"] == 3
    assert stats.by_channel["EMAIL"] == {
        "total": 3,
        "PENDING": 0,
        "SENT": 1,
        "FAILED": 2,
    }
    assert stats.retryable == 1
    assert stats.max_retries_reached == 1


def test_list_outbox_defaults_to_last_week_newest_first(service, session, make_user, clock):
    user = make_user()
    repository = OutboxRepository(session)
    old = repository.create(
        OutboxRecord(
            id=None,
            channel="EMAIL",
            event_type="ANNOUNCEMENT",
            target_user_id=user.id,
            title="Old",
            content="Old",
            created_at=clock() - timedelta(days=8),
        )
    )
    _dispatch(service, "ANNOUNCEMENT", [user.id], title="First")
    clock.advance(timedelta(minutes=1))
    _dispatch(service, "ANNOUNCEMENT", [user.id], title="Second")

    page = list_outbox(session, channel="email", now=clock())

    assert page.total == 2
    assert [record.title for record in page.items] == ["Second", "First"]
    assert old.id not in {record.id for record in page.items}

    everything = list_outbox(
        session, created_from=clock() - timedelta(days=30), page_size=500
    )
    assert everything.total == 5
    assert everything.page_size == 100


def test_list_outbox_rejects_unknown_status(session):
    with pytest.raises(ValueError):
        list_outbox(session, status="LOST")


def test_retry_only_accepts_failed_email_rows(service, session, make_user, transport):
    user = make_user()
    transport.failures_left = 1
    _dispatch(service, "PROJECT_APPROVED", [user.id])
    repository = OutboxRepository(session)
    failed = repository.list_retryable_failed_emails(
        created_since=service.clock() - timedelta(days=1), limit=10
    )[0]
    inbox_row = repository.list(OutboxFilters(channel="INBOX"))[0][0]

    assert service.retry(session, inbox_row.id) is False
    assert service.retry(session, failed.id) is True
    assert service.retry(session, failed.id) is False
    with pytest.raises(ValueError):
        service.retry(session, 9999)


def test_retry_all_failed_ignores_backoff(service, session, make_user, transport):
    users = [make_user(f"U{i}", f"u{i}@example.com") for i in range(3)]
    transport.failures_left = 3
    _dispatch(service, "PROJECT_APPROVED", [user.id for user in users])

    assert service.retry_all_failed(session) == 3
    assert get_outbox_stats(session).by_status["FAILED"] == 0


def test_inbox_reads_are_scoped_to_the_owner(service, session, make_user):
    owner = make_user("Owner", "owner@example.com")
    other = make_user("Other", "other@example.com")
    _dispatch(service, "DM_NEW_MESSAGE", [owner.id], skip_email=True)
    _dispatch(service, "PROJECT_APPROVED", [owner.id], skip_email=True)
    _dispatch(service, "ANNOUNCEMENT", [owner.id, other.id], skip_email=True)

    page = list_inbox(session, owner.id)
    assert page.total == 3
    assert page.unread_count == 3

    dm_only = list_inbox(session, owner.id, category="dm")
    assert [item.category for item in dm_only.items] == ["DM"]

    first = page.items[0]
    with pytest.raises(ValueError):
        mark_item_read(session, other.id, first.id)

    read = mark_item_read(session, owner.id, first.id)
    assert read.is_read is True
    assert read.read_at is not None

    counts = get_unread_counts(session, owner.id)
    assert counts.total == 2
    assert counts.by_category["MEETING"] == 0

    other_item = list_inbox(session, other.id).items[0]
    assert mark_items_read(session, owner.id, [other_item.id]) == 0
    assert mark_all_read(session, owner.id, category="PROJECT") == 1
    assert mark_all_read(session, owner.id) == 1
    assert get_unread_counts(session, other.id).total == 1


def test_preferences_are_created_lazily_and_partially_updated(session, make_user):
    user = make_user()

    defaults = get_preferences(session, user.id)
    assert defaults.email_enabled is True
    assert defaults.dm_email_mode == "BATCHED"

    updated = update_preferences(session, user.id, community_email_mode="immediate")
    assert updated.community_email_mode == "IMMEDIATE"
    assert updated.dm_email_mode == "BATCHED"

    with pytest.raises(NotificationValidationError):
        update_preferences(session, user.id, dm_email_mode="WEEKLY")
