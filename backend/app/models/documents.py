# backend/app/models/documents.py
"""
Stored document shapes.

slots/{date}_{HHMM}   exclusivity lock for one (date, time)
bookings/{id}         customer reservation, owns at most one slot
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


SLOTS_COLLECTION = "slots"
BOOKINGS_COLLECTION = "bookings"
SERVICES_COLLECTION = "services"
PRICING_COLLECTION = "pricing"


class BookingStatus(str, Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SlotDoc(BaseModel):
    date: str
    time: str
    booked: bool = True
    booking_id: Optional[str] = None  # back-reference, lookup only
    created_at: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class BookingDoc(BaseModel):
    id: Optional[str] = None  # document id, not stored in the body

    date: str
    time: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    service: Optional[str] = None
    price: Optional[str] = None

    status: BookingStatus = BookingStatus.BOOKED
    slot_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "BookingDoc":
        return cls.model_validate(doc)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})
