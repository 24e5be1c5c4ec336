"""Shared fixtures for the notification delivery tests."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

TEST_DB_PATH = Path(tempfile.mkdtemp(prefix="notifications-tests-")) / "test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "60"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ["NOTIFICATION_WORKER_ENABLED"] = "false"
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("SENDGRID_SENDER", None)

from app.config import get_settings  # noqa: E402

get_settings.cache_clear()

from app.application.use_cases.notifications import (  # noqa: E402
    NotificationService,
    set_notification_service,
)
from app.infrastructure.database import (  # noqa: E402
    Base,
    SessionLocal,
    engine,
    initialize_database,
)
from app.infrastructure.email import EmailDeliveryError  # noqa: E402
from app.infrastructure.models import RoleModel, UserModel  # noqa: E402
from app.utils import now_in_app_timezone  # noqa: E402


class ManualTimer:
    def __init__(self, when: float, fn, args) -> None:
        self.when = when
        self.fn = fn
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTaskScheduler:
    """Deterministic scheduler: submissions run inline, timers fire on ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []
        self.submitted: list[tuple] = []

    def call_later(self, delay, fn, *args) -> ManualTimer:
        timer = ManualTimer(self.now + delay, fn, args)
        self.timers.append(timer)
        return timer

    def submit(self, fn, *args):
        self.submitted.append((fn, args))
        return fn(*args)

    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (timer for timer in self.pending() if timer.when <= self.now),
            key=lambda timer: timer.when,
        )
        for timer in due:
            self.timers.remove(timer)
            timer.fn(*timer.args)


class FrozenClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


class FakeTransport:
    """Records messages; fails while ``failures_left`` is positive (or forever)."""

    def __init__(self, *, fail_forever: bool = False, failures: int = 0) -> None:
        self.fail_forever = fail_forever
        self.failures_left = failures
        self.sent = []
        self.attempts = 0

    def send(self, message) -> None:
        self.attempts += 1
        if self.fail_forever or self.failures_left > 0:
            self.failures_left = max(self.failures_left - 1, 0)
            raise EmailDeliveryError("SendGrid API responded with status 503", status_code=503)
        self.sent.append(message)


@pytest.fixture(autouse=True)
def database():
    """Recreate every table before each test."""

    Base.metadata.drop_all(bind=engine, checkfirst=True)
    initialize_database()
    yield
    Base.metadata.drop_all(bind=engine, checkfirst=True)


@pytest.fixture()
def session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def scheduler() -> ManualTaskScheduler:
    return ManualTaskScheduler()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(now_in_app_timezone().replace(microsecond=0))


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def service(scheduler, clock, transport):
    notification_service = NotificationService(
        settings=get_settings(),
        session_factory=SessionLocal,
        transport=transport,
        scheduler=scheduler,
        clock=clock,
    )
    set_notification_service(notification_service)
    yield notification_service
    set_notification_service(None)


def _ensure_role(db, alias: str) -> RoleModel:
    role = db.query(RoleModel).filter(RoleModel.alias == alias).first()
    if role is None:
        role = RoleModel(
            name="Administrator" if alias == "admin" else "Member", alias=alias
        )
        db.add(role)
        db.commit()
        db.refresh(role)
    return role


@pytest.fixture()
def make_user(session):
    """Factory creating users directly through the ORM."""

    def _make_user(
        name: str = "Member",
        email: str | None = "member@example.com",
        *,
        admin: bool = False,
        is_active: bool = True,
    ) -> UserModel:
        role = _ensure_role(session, "admin" if admin else "member")
        user = UserModel(name=name, email=email, role_id=role.id, is_active=is_active)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user
