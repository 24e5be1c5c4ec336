"""Tests for email rendering and the SendGrid transport."""

from types import SimpleNamespace

import pytest

from app.config import Settings
from app.domain.entities import OutboxRecord
from app.infrastructure.email import (
    EmailDeliveryError,
    EmailMessage,
    LoggingEmailTransport,
    SendGridEmailTransport,
    build_action_url,
    build_transport,
    render_notification_email,
)

MESSAGE = EmailMessage(
    to="member@example.com",
    subject="[Partner Network] Hello",
    html_body="<p>Hello</p>",
    text_body="Hello",
)


class _FakeSendGridClient:
    def __init__(self, *, response=None, error=None) -> None:
        self.client = SimpleNamespace(timeout=None)
        self.response = response
        self.error = error
        self.sent = []

    def send(self, mail):
        self.sent.append(mail)
        if self.error is not None:
            raise self.error
        return self.response


def test_sendgrid_transport_applies_timeout_and_sends():
    client = _FakeSendGridClient(response=SimpleNamespace(status_code=202, body=""))
    transport = SendGridEmailTransport(
        "key", "noreply@example.com", timeout_seconds=7, client=client
    )

    transport.send(MESSAGE)

    assert client.client.timeout == 7
    assert len(client.sent) == 1


def test_sendgrid_transport_raises_with_error_details(caplog):
    body = '{"errors": [{"message": "The from address does not match a verified Sender Identity"}]}'
    client = _FakeSendGridClient(response=SimpleNamespace(status_code=403, body=body))
    transport = SendGridEmailTransport("key", "noreply@example.com", client=client)

    with caplog.at_level("ERROR"):
        with pytest.raises(EmailDeliveryError) as excinfo:
            transport.send(MESSAGE)

    assert excinfo.value.status_code == 403
    assert "verified Sender Identity" in str(excinfo.value)
    assert "status 403" in caplog.text


def test_sendgrid_transport_wraps_client_exceptions():
    error = RuntimeError("connection reset")
    transport = SendGridEmailTransport(
        "key", "noreply@example.com", client=_FakeSendGridClient(error=error)
    )

    with pytest.raises(EmailDeliveryError) as excinfo:
        transport.send(MESSAGE)

    assert "connection reset" in str(excinfo.value)
    assert excinfo.value.__cause__ is error


def test_build_transport_falls_back_to_logging_without_sendgrid():
    settings = Settings(database_url="sqlite://", secret_key="secret")

    transport = build_transport(settings)

    assert isinstance(transport, LoggingEmailTransport)
    transport.send(MESSAGE)
    assert transport.sent == [MESSAGE]


def test_sendgrid_settings_must_be_provided_together():
    with pytest.raises(ValueError):
        Settings(database_url="sqlite://", secret_key="secret", sendgrid_api_key="key")


@pytest.mark.parametrize(
    ("object_type", "object_id", "expected"),
    [
        ("PROJECT", "12", "https://app.example.com/projects/12"),
        ("VENUE_BOOKING", "3", "https://app.example.com/bookings"),
        ("TOKEN_TRANSACTION", None, "https://app.example.com/tokens/transactions"),
        ("PROJECT", None, "https://app.example.com/inbox"),
        (None, None, "https://app.example.com/inbox"),
    ],
)
def test_build_action_url(object_type, object_id, expected):
    assert build_action_url("https://app.example.com/", object_type, object_id) == expected


def test_render_notification_email_escapes_content():
    record = OutboxRecord(
        id=1,
        channel="EMAIL",
        event_type="PROJECT_APPROVED",
        target_user_id=2,
        title="Project <Alpha> approved",
        content="First line\n\nSecond & last",
        related_object_type="PROJECT",
        related_object_id="99",
    )

    message = render_notification_email(
        record,
        "member@example.com",
        app_name="Partner Network",
        frontend_url="https://app.example.com",
        recipient_name="Ana",
    )

    assert message.subject == "[Partner Network] Project <Alpha> approved"
    assert "Project &lt;Alpha&gt; approved" in message.html_body
    assert "Second &amp; last" in message.html_body
    assert "https://app.example.com/projects/99" in message.text_body
    assert message.text_body.startswith("Hello Ana,")
