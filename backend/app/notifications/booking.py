"""
Booking event handlers.

Handles: booked, rescheduled, cancelled, updated.
Every event becomes one email to the customer; events without an
email address are skipped.
"""

import logging

from ..services.events import BookingEvent
from . import register_event
from .email import ResendEmailSender, render_booking_email

logger = logging.getLogger(__name__)


async def deliver_booking_email(kind: BookingEvent, data: dict, sender: ResendEmailSender) -> None:
    to = data.get("email")
    if not to:
        logger.info(f"{kind.value} event without email, skipping ({data.get('date')} {data.get('time')})")
        return

    subject, html = render_booking_email(kind, data)
    await sender.send(to, subject, html)


@register_event(BookingEvent.BOOKED.value)
async def handle_booked(data: dict, sender: ResendEmailSender) -> None:
    await deliver_booking_email(BookingEvent.BOOKED, data, sender)


@register_event(BookingEvent.RESCHEDULED.value)
async def handle_rescheduled(data: dict, sender: ResendEmailSender) -> None:
    await deliver_booking_email(BookingEvent.RESCHEDULED, data, sender)


@register_event(BookingEvent.CANCELLED.value)
async def handle_cancelled(data: dict, sender: ResendEmailSender) -> None:
    await deliver_booking_email(BookingEvent.CANCELLED, data, sender)


@register_event(BookingEvent.UPDATED.value)
async def handle_updated(data: dict, sender: ResendEmailSender) -> None:
    await deliver_booking_email(BookingEvent.UPDATED, data, sender)
