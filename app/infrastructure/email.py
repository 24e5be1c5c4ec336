"""Email rendering and transports for notification delivery via SendGrid."""

from __future__ import annotations

import html
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.config import Settings, get_settings
from app.domain.entities import OutboxRecord

logger = logging.getLogger(__name__)

# Related object type -> frontend path used for the email call to action.
_ACTION_PATHS: dict[str, str] = {
    "PROJECT": "/projects/{id}",
    "DEMAND": "/demands/{id}",
    "RESPONSE": "/responses/{id}",
    "MEETING": "/meetings/{id}",
    "VENUE_BOOKING": "/bookings",
    "TOKEN_TRANSACTION": "/tokens/transactions",
    "NETWORK_RESOURCE": "/network/resources/{id}",
}


class EmailDeliveryError(RuntimeError):
    """Raised by a transport when a message could not be handed over."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html_body: str
    text_body: str


class EmailTransport(Protocol):
    def send(self, message: EmailMessage) -> None:  # pragma: no cover - protocol
        ...


def _extract_sendgrid_error_details(body: Any) -> str | None:
    """Return a human readable description for a SendGrid error payload."""

    if body in (None, ""):
        return None

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return body
    else:
        parsed = body

    if isinstance(parsed, dict):
        errors = parsed.get("errors")
        if isinstance(errors, list):
            messages = [
                str(item["message"])
                for item in errors
                if isinstance(item, dict) and item.get("message")
            ]
            if messages:
                return "; ".join(messages)
        try:
            return json.dumps(parsed)
        except (TypeError, ValueError):
            return None

    if isinstance(parsed, list):
        return "; ".join(str(item) for item in parsed)

    return None


def _describe_failure(prefix: str, status_code: Any, body: Any) -> str:
    details = _extract_sendgrid_error_details(body)
    if status_code and details:
        return f"{prefix} with status {status_code}: {details}"
    if status_code:
        return f"{prefix} with status {status_code}"
    if details:
        return f"{prefix}: {details}"
    return prefix


class SendGridEmailTransport:
    """Deliver :class:`EmailMessage` objects through the SendGrid REST API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        timeout_seconds: float = 15.0,
        client: SendGridAPIClient | None = None,
    ) -> None:
        self.sender = sender
        self.client = client or SendGridAPIClient(api_key)
        # python-http-client reads the timeout from the wrapped client.
        inner = getattr(self.client, "client", None)
        if inner is not None:
            inner.timeout = timeout_seconds

    def send(self, message: EmailMessage) -> None:
        mail = Mail(
            from_email=self.sender,
            to_emails=message.to,
            subject=message.subject,
            html_content=message.html_body,
            plain_text_content=message.text_body,
        )

        try:
            response = self.client.send(mail)
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            description = _describe_failure(
                "SendGrid API request failed", status_code, getattr(exc, "body", None)
            )
            if description == "SendGrid API request failed":
                description = f"{description}: {exc}"
            logger.error("%s", description)
            raise EmailDeliveryError(description, status_code=status_code) from exc

        status_code = getattr(response, "status_code", None)
        if not isinstance(status_code, int) or not 200 <= status_code < 300:
            description = _describe_failure(
                "SendGrid API responded", status_code, getattr(response, "body", None)
            )
            logger.error("%s", description)
            raise EmailDeliveryError(
                description,
                status_code=status_code if isinstance(status_code, int) else None,
            )


class LoggingEmailTransport:
    """Development transport that only logs outgoing messages."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        logger.info(
            "SendGrid configuration incomplete; logging email to %s: %s",
            message.to,
            message.subject,
        )
        self.sent.append(message)


def build_transport(settings: Settings | None = None) -> EmailTransport:
    """Return the SendGrid transport when configured, else the logging one."""

    settings = settings or get_settings()
    if settings.email_configured:
        return SendGridEmailTransport(
            settings.sendgrid_api_key,
            settings.sendgrid_sender,
            timeout_seconds=settings.email_send_timeout_seconds,
        )
    logger.warning("SendGrid is not configured; emails will only be logged")
    return LoggingEmailTransport()


def build_action_url(
    frontend_url: str,
    related_object_type: str | None,
    related_object_id: str | None,
) -> str:
    """Return the deep link for the related object, defaulting to the inbox."""

    base = frontend_url.rstrip("/")
    template = _ACTION_PATHS.get((related_object_type or "").upper())
    if template is None or ("{id}" in template and not related_object_id):
        return f"{base}/inbox"
    return base + template.format(id=related_object_id)


def render_notification_email(
    record: OutboxRecord,
    recipient: str,
    *,
    app_name: str,
    frontend_url: str,
    recipient_name: str | None = None,
) -> EmailMessage:
    """Render the subject and bodies for an EMAIL outbox row."""

    action_url = build_action_url(
        frontend_url, record.related_object_type, record.related_object_id
    )
    greeting = f"Hello {recipient_name}," if recipient_name else "Hello,"
    paragraphs = [part for part in record.content.split("\n\n") if part.strip()]

    html_parts = [f"<p>{html.escape(greeting)}</p>"]
    html_parts.append(f"<h2>{html.escape(record.title)}</h2>")
    for paragraph in paragraphs:
        escaped = html.escape(paragraph).replace("\n", "<br>")
        html_parts.append(f"<p>{escaped}</p>")
    html_parts.append(
        f'<p><a href="{html.escape(action_url, quote=True)}">'
        f"View in {html.escape(app_name)}</a></p>"
    )
    html_parts.append(
        "<p>You can change how often you receive these emails in your "
        "notification preferences.</p>"
    )

    text_body = "\n\n".join(
        [greeting, record.title, *paragraphs, f"View in {app_name}: {action_url}"]
    )
    return EmailMessage(
        to=recipient,
        subject=f"[{app_name}] {record.title}",
        html_body="".join(html_parts),
        text_body=text_body,
    )


__all__ = [
    "EmailDeliveryError",
    "EmailMessage",
    "EmailTransport",
    "LoggingEmailTransport",
    "SendGridEmailTransport",
    "build_action_url",
    "build_transport",
    "render_notification_email",
]
