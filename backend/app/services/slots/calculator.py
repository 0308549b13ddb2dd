# backend/app/services/slots/calculator.py
"""
Candidate slot generation.

Produces the ordered "HH:MM" start times for a date from shop hours alone:
  ✓ weekday band (Mon–Fri / Sat / Sun)
  ✓ slot_duration_minutes

Does NOT contain:
  ✗ Taken slots (see availability.py)
"""

from datetime import date
from typing import Union

from .config import ScheduleConfig, minutes_to_time_str


def as_date(value: Union[date, str]) -> date:
    """Accept a date or a "YYYY-MM-DD" string."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def generate_slots(target_date: Union[date, str], config: ScheduleConfig) -> list[str]:
    """
    Generate candidate start times for target_date.

    A slot must fit entirely inside the open window: the last start time t
    satisfies t + duration <= close.

    Returns:
        Ordered list of "HH:MM" strings. Empty list = closed that day.
    """
    window = config.hours.for_date(as_date(target_date)).window
    if window is None:
        return []

    open_min, close_min = window
    step = config.slot_duration_minutes

    slots: list[str] = []
    t = open_min
    while t + step <= close_min:
        slots.append(minutes_to_time_str(t))
        t += step

    return slots


def is_candidate(target_date: Union[date, str], time_str: str, config: ScheduleConfig) -> bool:
    """True if time_str is one of the generated start times for target_date."""
    return time_str in generate_slots(target_date, config)
