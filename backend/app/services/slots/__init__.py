# backend/app/services/slots/__init__.py
"""
Slots calculation module.

Candidates: generated from shop hours (pure)
Availability: candidates minus live slot locks
"""

from .config import (
    DayHours,
    ScheduleConfig,
    ScheduleConfigRepository,
    WeeklyHours,
    canonical_date,
    parse_slot_id,
    slot_id,
)
from .calculator import generate_slots, is_candidate
from .availability import Availability, AvailabilityView, compute_availability

__all__ = [
    "DayHours",
    "ScheduleConfig",
    "ScheduleConfigRepository",
    "WeeklyHours",
    "canonical_date",
    "parse_slot_id",
    "slot_id",
    "generate_slots",
    "is_candidate",
    "Availability",
    "AvailabilityView",
    "compute_availability",
]
