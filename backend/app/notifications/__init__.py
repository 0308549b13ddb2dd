"""
Customer email notifications.

The reservation coordinator pushes one JSON message per booking change
onto events:p2p. The consumer (consumer.py) pops them and hands each to
process_event(), which picks the email template handler for its type.
Handlers live in booking.py and register themselves on import.
"""

import logging
from typing import Awaitable, Callable

from .email import ResendEmailSender

logger = logging.getLogger(__name__)

EmailHandler = Callable[[dict, ResendEmailSender], Awaitable[None]]

# booking event type -> email handler
EVENT_HANDLERS: dict[str, EmailHandler] = {}


def register_event(event_type: str):
    """Register the email handler for one booking event type."""
    def decorator(func: EmailHandler):
        if event_type in EVENT_HANDLERS:
            logger.warning(f"Email handler for '{event_type}' replaced by {func.__name__}")
        EVENT_HANDLERS[event_type] = func
        return func
    return decorator


async def process_event(data: dict, sender: ResendEmailSender) -> bool:
    """
    Send the email for one booking event.

    Returns False when the message names no known booking event; such
    messages are dropped, not retried. Delivery errors propagate so the
    consumer can re-queue the message.
    """
    event_type = data.get("type")
    handler = EVENT_HANDLERS.get(event_type) if event_type else None

    if handler is None:
        logger.warning(f"Dropping queue message with unknown booking event {event_type!r}")
        return False

    logger.info(f"Emailing '{event_type}' for {data.get('date')} {data.get('time')}")
    await handler(data, sender)
    return True


from . import booking  # noqa: E402, F401
