"""
backend/app/notifications/email.py

Booking emails: HTML templates + Resend HTTP API client.
"""

import logging
from functools import lru_cache
from html import escape
from typing import Optional

import httpx

from ..config import settings
from ..services.events import BookingEvent

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Resend rejected the message or could not be reached."""


# kind → (subject prefix, heading, intro line)
TEMPLATES: dict[BookingEvent, tuple[str, str, str]] = {
    BookingEvent.BOOKED: (
        "Booking confirmed",
        "Booking confirmed",
        "thanks for booking with us! Here are your details:",
    ),
    BookingEvent.RESCHEDULED: (
        "Booking rescheduled",
        "Booking rescheduled",
        "your booking was moved. Here are the new details:",
    ),
    BookingEvent.CANCELLED: (
        "Booking cancelled",
        "Booking cancelled",
        "your booking was cancelled. These were the details:",
    ),
    BookingEvent.UPDATED: (
        "Booking updated",
        "Booking updated",
        "your booking details were updated:",
    ),
}

ROWS = (
    ("Service", "service"),
    ("Price", "price"),
    ("Date", "date"),
    ("Time", "time"),
    ("Phone", "phone"),
)


def _row(label: str, value: Optional[str]) -> str:
    if not value:
        return ""
    return (
        '<tr>'
        f'<td style="padding:6px 0;color:#a3a3a3;width:120px;vertical-align:top">{escape(label)}</td>'
        f'<td style="padding:6px 0;color:#e5e5e5">{escape(str(value))}</td>'
        '</tr>'
    )


def render_booking_email(
    kind: BookingEvent,
    payload: dict,
    shop_name: str = settings.shop_name,
) -> tuple[str, str]:
    """
    Build (subject, html) for a booking event.

    Rows are rendered only for values present in the payload.
    """
    kind = BookingEvent(kind)
    prefix, heading, intro = TEMPLATES[kind]
    subject = f"{prefix} — {payload.get('date', '')} {payload.get('time', '')}".rstrip()

    name = payload.get("name") or "there"
    rows = "".join(_row(label, payload.get(field)) for label, field in ROWS)

    html = (
        '<div style="background:#0a0a0a;color:#e5e5e5;font-family:Arial,sans-serif;padding:24px">'
        f'<h1 style="margin:0 0 16px;font-size:20px">{escape(heading)}</h1>'
        f'<p style="margin:0 0 12px">Hey {escape(name)}, {escape(intro)}</p>'
        f'<table role="presentation" width="100%">{rows}</table>'
        '<p style="margin:16px 0 0">If anything changes, just reply to this email.</p>'
        f'<p style="margin:24px 0 0;color:#737373">{escape(shop_name)}</p>'
        '</div>'
    )
    return subject, html


class ResendEmailSender:
    """Async client for POST https://api.resend.com/emails."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> Optional[str]:
        """
        Send one message.

        Returns:
            Resend message id.

        Raises:
            EmailDeliveryError: non-2xx answer or transport failure.
        """
        body = {"from": self.from_address, "to": [to], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self.api_url, json=body, headers=headers)
            except httpx.HTTPError as e:
                raise EmailDeliveryError(f"Resend request failed: {e}") from e

        if resp.status_code >= 300:
            raise EmailDeliveryError(f"Resend error {resp.status_code}: {resp.text[:200]}")

        message_id = resp.json().get("id")
        logger.info(f"Email sent to {to}: {subject} (id={message_id})")
        return message_id


@lru_cache
def get_email_sender() -> ResendEmailSender:
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY is not set, emails will be rejected")
    return ResendEmailSender(
        api_key=settings.resend_api_key,
        from_address=settings.email_from,
        api_url=settings.resend_api_url,
    )
