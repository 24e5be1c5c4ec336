"""Business events accepted by the notification core and their static catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping

TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 2000


class NotificationValidationError(ValueError):
    """Raised when an inbound event is malformed; nothing is persisted."""


class NotificationPersistenceError(RuntimeError):
    """Raised when a dispatch could not record a single recipient."""


class NotificationEventType(str, Enum):
    """Every business event that can produce a notification."""

    # Projects
    PROJECT_APPROVED = "PROJECT_APPROVED"
    PROJECT_REJECTED = "PROJECT_REJECTED"
    PROJECT_JOIN_APPROVED = "PROJECT_JOIN_APPROVED"
    PROJECT_JOIN_REJECTED = "PROJECT_JOIN_REJECTED"
    PROJECT_STATUS_CHANGED = "PROJECT_STATUS_CHANGED"
    PROJECT_EVENT_ADDED = "PROJECT_EVENT_ADDED"

    # Demands
    DEMAND_PUBLISHED = "DEMAND_PUBLISHED"
    DEMAND_NEW_RESPONSE = "DEMAND_NEW_RESPONSE"
    DEMAND_RESPONSE_APPROVED = "DEMAND_RESPONSE_APPROVED"
    DEMAND_RESPONSE_REJECTED = "DEMAND_RESPONSE_REJECTED"
    DEMAND_CLOSED = "DEMAND_CLOSED"
    DEMAND_CANCELLED = "DEMAND_CANCELLED"

    # Responses
    RESPONSE_MODIFY_REQUEST = "RESPONSE_MODIFY_REQUEST"
    RESPONSE_ABANDON_REQUEST = "RESPONSE_ABANDON_REQUEST"
    RESPONSE_MODIFY_ACCEPTED = "RESPONSE_MODIFY_ACCEPTED"
    RESPONSE_MODIFY_REJECTED = "RESPONSE_MODIFY_REJECTED"
    RESPONSE_ADMIN_ARBITRATION = "RESPONSE_ADMIN_ARBITRATION"

    # Tokens
    TOKEN_TRANSFER_INITIATED = "TOKEN_TRANSFER_INITIATED"
    TOKEN_TRANSFER_APPROVED = "TOKEN_TRANSFER_APPROVED"
    TOKEN_TRANSFER_REJECTED = "TOKEN_TRANSFER_REJECTED"
    TOKEN_TRANSFER_CONFIRMED = "TOKEN_TRANSFER_CONFIRMED"
    TOKEN_TRANSFER_RECEIVER_REJECTED = "TOKEN_TRANSFER_RECEIVER_REJECTED"
    TOKEN_ADMIN_GRANT = "TOKEN_ADMIN_GRANT"
    TOKEN_ADMIN_DEDUCT = "TOKEN_ADMIN_DEDUCT"
    TOKEN_GRANT_APPROVED = "TOKEN_GRANT_APPROVED"
    TOKEN_GRANT_REJECTED = "TOKEN_GRANT_REJECTED"

    # Venue bookings and meetings
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_UPDATED = "BOOKING_UPDATED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_CONFLICT_FAILED = "BOOKING_CONFLICT_FAILED"
    BOOKING_ADMIN_OVERRIDE = "BOOKING_ADMIN_OVERRIDE"
    MEETING_INVITED = "MEETING_INVITED"
    MEETING_TIME_CHANGED = "MEETING_TIME_CHANGED"
    MEETING_CANCELLED = "MEETING_CANCELLED"
    MEETING_FINISHED = "MEETING_FINISHED"

    # Community feed
    COMMUNITY_MENTIONED = "COMMUNITY_MENTIONED"
    COMMUNITY_REPLY = "COMMUNITY_REPLY"
    COMMUNITY_POST_DELETED = "COMMUNITY_POST_DELETED"
    COMMENT_REPLY = "COMMENT_REPLY"
    COMMENT_REPLIED = "COMMENT_REPLIED"

    # Votes
    VOTE_CREATED = "VOTE_CREATED"
    VOTE_CLOSED = "VOTE_CLOSED"
    VOTE_DEADLINE_REMINDER = "VOTE_DEADLINE_REMINDER"

    # Direct messages
    DM_NEW_MESSAGE = "DM_NEW_MESSAGE"
    DM_RECEIVED = "DM_RECEIVED"

    # Network resources
    NETWORK_RESOURCE_CREATED = "NETWORK_RESOURCE_CREATED"
    NETWORK_REFERRAL_SUBMITTED = "NETWORK_REFERRAL_SUBMITTED"
    NETWORK_REFERRAL_LINKED = "NETWORK_REFERRAL_LINKED"

    # Platform
    ANNOUNCEMENT = "ANNOUNCEMENT"
    FEEDBACK_SUBMITTED = "FEEDBACK_SUBMITTED"
    FEEDBACK_PROCESSED = "FEEDBACK_PROCESSED"


class InboxCategory(str, Enum):
    """Buckets used to group inbox items in the user interface."""

    PROJECT = "PROJECT"
    DEMAND = "DEMAND"
    RESPONSE = "RESPONSE"
    TOKEN = "TOKEN"
    BOOKING = "BOOKING"
    MEETING = "MEETING"
    COMMUNITY = "COMMUNITY"
    DM = "DM"
    NETWORK = "NETWORK"
    SYSTEM = "SYSTEM"


_E = NotificationEventType

EVENT_CATEGORIES: Mapping[NotificationEventType, InboxCategory] = {
    _E.PROJECT_APPROVED: InboxCategory.PROJECT,
    _E.PROJECT_REJECTED: InboxCategory.PROJECT,
    _E.PROJECT_JOIN_APPROVED: InboxCategory.PROJECT,
    _E.PROJECT_JOIN_REJECTED: InboxCategory.PROJECT,
    _E.PROJECT_STATUS_CHANGED: InboxCategory.PROJECT,
    _E.PROJECT_EVENT_ADDED: InboxCategory.PROJECT,
    _E.DEMAND_PUBLISHED: InboxCategory.DEMAND,
    _E.DEMAND_NEW_RESPONSE: InboxCategory.DEMAND,
    _E.DEMAND_RESPONSE_APPROVED: InboxCategory.RESPONSE,
    _E.DEMAND_RESPONSE_REJECTED: InboxCategory.RESPONSE,
    _E.DEMAND_CLOSED: InboxCategory.DEMAND,
    _E.DEMAND_CANCELLED: InboxCategory.DEMAND,
    _E.RESPONSE_MODIFY_REQUEST: InboxCategory.RESPONSE,
    _E.RESPONSE_ABANDON_REQUEST: InboxCategory.RESPONSE,
    _E.RESPONSE_MODIFY_ACCEPTED: InboxCategory.RESPONSE,
    _E.RESPONSE_MODIFY_REJECTED: InboxCategory.RESPONSE,
    _E.RESPONSE_ADMIN_ARBITRATION: InboxCategory.RESPONSE,
    _E.TOKEN_TRANSFER_INITIATED: InboxCategory.TOKEN,
    _E.TOKEN_TRANSFER_APPROVED: InboxCategory.TOKEN,
    _E.TOKEN_TRANSFER_REJECTED: InboxCategory.TOKEN,
    _E.TOKEN_TRANSFER_CONFIRMED: InboxCategory.TOKEN,
    _E.TOKEN_TRANSFER_RECEIVER_REJECTED: InboxCategory.TOKEN,
    _E.TOKEN_ADMIN_GRANT: InboxCategory.TOKEN,
    _E.TOKEN_ADMIN_DEDUCT: InboxCategory.TOKEN,
    _E.TOKEN_GRANT_APPROVED: InboxCategory.TOKEN,
    _E.TOKEN_GRANT_REJECTED: InboxCategory.TOKEN,
    _E.BOOKING_CREATED: InboxCategory.BOOKING,
    _E.BOOKING_UPDATED: InboxCategory.BOOKING,
    _E.BOOKING_CANCELLED: InboxCategory.BOOKING,
    _E.BOOKING_CONFLICT_FAILED: InboxCategory.BOOKING,
    _E.BOOKING_ADMIN_OVERRIDE: InboxCategory.BOOKING,
    _E.MEETING_INVITED: InboxCategory.MEETING,
    _E.MEETING_TIME_CHANGED: InboxCategory.MEETING,
    _E.MEETING_CANCELLED: InboxCategory.MEETING,
    _E.MEETING_FINISHED: InboxCategory.MEETING,
    _E.COMMUNITY_MENTIONED: InboxCategory.COMMUNITY,
    _E.COMMUNITY_REPLY: InboxCategory.COMMUNITY,
    _E.COMMUNITY_POST_DELETED: InboxCategory.COMMUNITY,
    _E.COMMENT_REPLY: InboxCategory.COMMUNITY,
    _E.COMMENT_REPLIED: InboxCategory.COMMUNITY,
    _E.VOTE_CREATED: InboxCategory.COMMUNITY,
    _E.VOTE_CLOSED: InboxCategory.COMMUNITY,
    _E.VOTE_DEADLINE_REMINDER: InboxCategory.COMMUNITY,
    _E.DM_NEW_MESSAGE: InboxCategory.DM,
    _E.DM_RECEIVED: InboxCategory.DM,
    _E.NETWORK_RESOURCE_CREATED: InboxCategory.NETWORK,
    _E.NETWORK_REFERRAL_SUBMITTED: InboxCategory.NETWORK,
    _E.NETWORK_REFERRAL_LINKED: InboxCategory.NETWORK,
    _E.ANNOUNCEMENT: InboxCategory.SYSTEM,
    _E.FEEDBACK_SUBMITTED: InboxCategory.SYSTEM,
    _E.FEEDBACK_PROCESSED: InboxCategory.SYSTEM,
}

# Decision-bearing notices; never merged into a digest.
IMMEDIATE_EMAIL_EVENTS: frozenset[NotificationEventType] = frozenset(
    {
        _E.PROJECT_APPROVED,
        _E.PROJECT_REJECTED,
        _E.TOKEN_TRANSFER_APPROVED,
        _E.TOKEN_TRANSFER_REJECTED,
        _E.TOKEN_GRANT_APPROVED,
        _E.TOKEN_GRANT_REJECTED,
        _E.TOKEN_ADMIN_GRANT,
        _E.TOKEN_ADMIN_DEDUCT,
    }
)

# Preference groups controlling whether a batchable event is digested.
BATCH_GROUP_DM = "dm"
BATCH_GROUP_COMMUNITY = "community"
BATCH_GROUP_PROJECT_TIMELINE = "project_timeline"

BATCH_GROUPS: Mapping[NotificationEventType, str] = {
    _E.DM_NEW_MESSAGE: BATCH_GROUP_DM,
    _E.DM_RECEIVED: BATCH_GROUP_DM,
    _E.COMMUNITY_MENTIONED: BATCH_GROUP_COMMUNITY,
    _E.PROJECT_EVENT_ADDED: BATCH_GROUP_PROJECT_TIMELINE,
}

DEFAULT_BATCH_WINDOWS: Mapping[str, int] = {
    BATCH_GROUP_DM: 60,
    BATCH_GROUP_COMMUNITY: 300,
    BATCH_GROUP_PROJECT_TIMELINE: 600,
}


def category_for(event_type: NotificationEventType) -> InboxCategory:
    """Return the inbox category for ``event_type``."""

    return EVENT_CATEGORIES.get(event_type, InboxCategory.SYSTEM)


@dataclass(frozen=True)
class NotificationEvent:
    """Normalized event descriptor handed over by the business modules."""

    event_type: NotificationEventType
    target_user_ids: tuple[int, ...]
    title: str
    content: str
    actor_user_id: int | None = None
    related_object_type: str | None = None
    related_object_id: str | None = None
    dedupe_key: str | None = None
    skip_email: bool = False

    @classmethod
    def create(
        cls,
        *,
        event_type: NotificationEventType | str,
        target_user_ids: Iterable[int],
        title: str,
        content: str,
        actor_user_id: int | None = None,
        related_object_type: str | None = None,
        related_object_id: str | None = None,
        dedupe_key: str | None = None,
        skip_email: bool = False,
    ) -> "NotificationEvent":
        """Build a validated event, raising :class:`NotificationValidationError`."""

        try:
            resolved_type = NotificationEventType(event_type)
        except ValueError as exc:
            raise NotificationValidationError(
                f"Unknown notification event type: {event_type}"
            ) from exc

        recipients: list[int] = []
        for user_id in target_user_ids:
            if user_id is None or user_id in recipients:
                continue
            recipients.append(user_id)
        if not recipients:
            raise NotificationValidationError("At least one recipient is required")

        title = (title or "").strip()
        content = (content or "").strip()
        if not title:
            raise NotificationValidationError("Notification title must not be empty")
        if len(title) > TITLE_MAX_LENGTH:
            raise NotificationValidationError(
                f"Notification title exceeds {TITLE_MAX_LENGTH} characters"
            )
        if not content:
            raise NotificationValidationError("Notification content must not be empty")
        if len(content) > CONTENT_MAX_LENGTH:
            raise NotificationValidationError(
                f"Notification content exceeds {CONTENT_MAX_LENGTH} characters"
            )

        return cls(
            event_type=resolved_type,
            target_user_ids=tuple(recipients),
            title=title,
            content=content,
            actor_user_id=actor_user_id,
            related_object_type=related_object_type,
            related_object_id=related_object_id,
            dedupe_key=(dedupe_key or None),
            skip_email=skip_email,
        )

    @property
    def category(self) -> InboxCategory:
        return category_for(self.event_type)

    def recipient_dedupe_key(self, user_id: int, channel: str) -> str | None:
        """Return the per-recipient, per-channel dedupe key, if any."""

        if not self.dedupe_key:
            return None
        return f"{self.dedupe_key}:{user_id}:{channel}"


@dataclass
class DispatchResult:
    """Counts returned by a fan-out."""

    inbox_count: int = 0
    email_count: int = 0
    failed_user_ids: list[int] = field(default_factory=list)


__all__ = [
    "BATCH_GROUPS",
    "BATCH_GROUP_COMMUNITY",
    "BATCH_GROUP_DM",
    "BATCH_GROUP_PROJECT_TIMELINE",
    "CONTENT_MAX_LENGTH",
    "DEFAULT_BATCH_WINDOWS",
    "DispatchResult",
    "EVENT_CATEGORIES",
    "IMMEDIATE_EMAIL_EVENTS",
    "InboxCategory",
    "NotificationEvent",
    "NotificationEventType",
    "NotificationPersistenceError",
    "NotificationValidationError",
    "TITLE_MAX_LENGTH",
    "category_for",
]
