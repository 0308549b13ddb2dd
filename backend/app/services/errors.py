# backend/app/services/errors.py
"""
Reservation error taxonomy.

Each error carries the HTTP status the routers answer with.
"""

from typing import Any, Optional


class ReservationError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SlotConflict(ReservationError):
    """Target (date, time) is already booked."""
    status_code = 409

    def __init__(self, slot_date: str, slot_time: str):
        super().__init__(f"This time was just booked ({slot_date} {slot_time}). Pick another.")
        self.date = slot_date
        self.time = slot_time


class NotFoundError(ReservationError):
    status_code = 404


class BookingNotFound(NotFoundError):
    def __init__(self, booking_id: str):
        super().__init__(f"Booking not found: {booking_id}")
        self.booking_id = booking_id


class CatalogItemNotFound(NotFoundError):
    def __init__(self, collection: str, item_id: str):
        super().__init__(f"{collection} item not found: {item_id}")
        self.item_id = item_id


class InvalidBookingState(ReservationError):
    """Operation not allowed for the booking's current status."""
    status_code = 409


class BookingValidationError(ReservationError):
    """Missing or malformed fields, raised before any store call."""
    status_code = 422

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class StoreUnavailable(ReservationError):
    """Transport or transaction failure; the client may re-submit."""
    status_code = 503
