"""
backend/app/services/events.py

Booking notifications.

The reservation core reports one of four canonical event kinds after a
successful commit. Delivery is fire-and-forget: a failing notifier is
logged and never affects the reservation outcome.

RedisEventNotifier pushes events to the `events:p2p` queue consumed by
backend/app/notifications/consumer.py (email delivery).
"""

import json
import logging
import time
from enum import Enum
from typing import Any, Optional, Protocol

from redis import Redis

logger = logging.getLogger(__name__)

EVENTS_QUEUE = "events:p2p"
PAYLOAD_FIELDS = ("name", "email", "phone", "service", "price", "date", "time")


class BookingEvent(str, Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    UPDATED = "updated"


class NotificationPort(Protocol):
    def notify(self, kind: BookingEvent, payload: dict[str, Any]) -> None: ...


def booking_payload(booking: Any) -> dict[str, Any]:
    """Notification payload for a booking document/model, empty fields dropped."""
    if not isinstance(booking, dict):
        booking = booking.model_dump(mode="json")
    return {
        field: booking[field]
        for field in PAYLOAD_FIELDS
        if booking.get(field) not in (None, "")
    }


class RedisEventNotifier:
    """Emit a p2p event (instant delivery) to a Redis list."""

    def __init__(self, redis: Redis, queue: str = EVENTS_QUEUE):
        self.redis = redis
        self.queue = queue

    def notify(self, kind: BookingEvent, payload: dict[str, Any]) -> None:
        event = {
            "type": kind.value,
            **payload,
            "ts": int(time.time()),
        }
        try:
            self.redis.rpush(self.queue, json.dumps(event))
            logger.info(f"Event emitted: {kind.value} → {self.queue}")
        except Exception as e:
            logger.error(f"Failed to emit event {kind.value}: {e}")


class LoggingNotifier:
    """Used when email delivery is disabled."""

    def __init__(self, level: int = logging.INFO, log: Optional[logging.Logger] = None):
        self.level = level
        self.log = log or logger

    def notify(self, kind: BookingEvent, payload: dict[str, Any]) -> None:
        self.log.log(
            self.level,
            f"Booking event {kind.value}: {payload.get('date')} {payload.get('time')} "
            f"({payload.get('name')})",
        )
