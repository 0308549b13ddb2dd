# backend/app/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from typing import Optional
from pydantic import BaseModel, Field

from ..services.slots import Availability


class AvailabilityResponse(BaseModel):
    """Bookable times for one day."""
    date: str
    candidates: list[str] = Field(description="All start times generated from shop hours")
    taken: list[str] = Field(description="Times locked by active bookings")
    bookable: list[str]
    closed: bool = Field(description="True when the shop is closed that day")
    loading: bool = False
    slot_duration_minutes: int

    @classmethod
    def from_availability(cls, availability: Availability) -> "AvailabilityResponse":
        return cls(
            date=availability.date or "",
            candidates=list(availability.candidates),
            taken=sorted(availability.taken),
            bookable=list(availability.bookable),
            closed=availability.closed,
            loading=availability.loading,
            slot_duration_minutes=availability.slot_duration_minutes,
        )


class SlotRead(BaseModel):
    """Slot lock document (admin/debug)."""
    id: str
    date: str
    time: str
    booked: bool
    booking_id: Optional[str] = None
    created_at: Optional[str] = None
