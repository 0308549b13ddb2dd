# backend/app/services/slots/config.py
"""
Shop schedule configuration for slots calculation.

Stored as a single document settings/default:

    {
        "slot_duration_minutes": 60,
        "timezone": "America/Toronto",
        "hours": {
            "mon_fri": {"open": "09:00", "close": "18:00"},
            "sat": {"open": "10:00", "close": "16:00"},
            "sun": {"closed": true}
        }
    }

The legacy flat shape written by the first version of the site
(slotDuration, monFriOpen, ..., sunClosed) is still accepted on load.
"""

import logging
import re
import time
from datetime import date
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..store import DocumentStore, Subscription
from ..store.base import ErrorCallback

logger = logging.getLogger(__name__)


SETTINGS_COLLECTION = "settings"
SETTINGS_DOC_ID = "default"
DEFAULT_TIMEZONE = "America/Toronto"

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ── Time helpers ─────────────────────────────────────────────────────────


def time_str_to_minutes(time_str: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hour, minute = time_str.split(":")
    return int(hour) * 60 + int(minute)


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def canonical_date(value: str) -> str:
    """
    Validate a "YYYY-MM-DD" date string.

    Only the zero-padded form is accepted: slot ids and the date index are
    keyed by the literal string, so one calendar day must have one spelling.
    """
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    return date.fromisoformat(value).isoformat()


def slot_id(slot_date: str, slot_time: str) -> str:
    """
    Lock document id for a (date, time) pair.

    "2024-06-01", "09:30" → "2024-06-01_0930"
    """
    return f"{slot_date}_{slot_time.replace(':', '')}"


def parse_slot_id(value: str) -> tuple[str, str]:
    """Inverse of slot_id(): "2024-06-01_0930" → ("2024-06-01", "09:30")."""
    slot_date, _, compact = value.partition("_")
    if len(compact) != 4 or not compact.isdigit():
        raise ValueError(f"Invalid slot id: {value!r}")
    try:
        slot_date = canonical_date(slot_date)
    except ValueError:
        raise ValueError(f"Invalid slot id: {value!r}")
    return slot_date, f"{compact[:2]}:{compact[2:]}"


# ── Models ───────────────────────────────────────────────────────────────


class DayHours(BaseModel):
    """Open window for one shop band. Missing boundaries count as closed."""
    open: Optional[str] = None
    close: Optional[str] = None
    closed: bool = False

    model_config = {"frozen": True}

    @field_validator("open", "close", mode="before")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not isinstance(v, str) or not TIME_RE.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @model_validator(mode="after")
    def check_window(self) -> "DayHours":
        if not self.closed and self.open and self.close:
            if time_str_to_minutes(self.open) >= time_str_to_minutes(self.close):
                raise ValueError("open must be earlier than close")
        return self

    @property
    def window(self) -> Optional[tuple[int, int]]:
        """(open, close) in minutes, or None when nothing can be booked."""
        if self.closed or not self.open or not self.close:
            return None
        return time_str_to_minutes(self.open), time_str_to_minutes(self.close)


class WeeklyHours(BaseModel):
    mon_fri: DayHours = Field(default_factory=lambda: DayHours(open="09:00", close="18:00"))
    sat: DayHours = Field(default_factory=lambda: DayHours(open="10:00", close="16:00"))
    sun: DayHours = Field(default_factory=lambda: DayHours(closed=True))

    model_config = {"frozen": True}

    def for_date(self, target_date: date) -> DayHours:
        weekday = target_date.weekday()  # 0 = Monday, 6 = Sunday
        if weekday < 5:
            return self.mon_fri
        if weekday == 5:
            return self.sat
        return self.sun


class ScheduleConfig(BaseModel):
    """
    Weekly operating hours and slot granularity.

    Attributes:
        slot_duration_minutes: Slot length, positive multiple of 30
        timezone: Shop timezone (fixed, informational)
        hours: Mon–Fri / Sat / Sun bands
    """
    slot_duration_minutes: int = 60
    timezone: str = DEFAULT_TIMEZONE
    hours: WeeklyHours = Field(default_factory=WeeklyHours)

    model_config = {"frozen": True}

    @field_validator("slot_duration_minutes")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v <= 0 or v % 30 != 0:
            raise ValueError(f"slot_duration_minutes must be a positive multiple of 30, got {v}")
        return v

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ScheduleConfig":
        """Build from a stored settings document (current or legacy shape)."""
        if isinstance(doc.get("hours"), dict):
            hours = doc["hours"]
            return cls.model_validate({
                "slot_duration_minutes": doc.get(
                    "slot_duration_minutes", doc.get("slotDurationMinutes", 60)
                ),
                "timezone": doc.get("timezone") or DEFAULT_TIMEZONE,
                "hours": {
                    "mon_fri": _band(hours.get("mon_fri", hours.get("monFri"))),
                    "sat": _band(hours.get("sat")),
                    "sun": _band(hours.get("sun")),
                },
            })

        # Legacy flat shape
        sun_closed = doc.get("sunClosed", doc.get("sundayClosed", True))
        return cls.model_validate({
            "slot_duration_minutes": doc.get("slotDuration", doc.get("slotDurationMinutes", 60)),
            "timezone": doc.get("timezone") or DEFAULT_TIMEZONE,
            "hours": {
                "mon_fri": {"open": doc.get("monFriOpen"), "close": doc.get("monFriClose")},
                "sat": {"open": doc.get("satOpen"), "close": doc.get("satClose")},
                "sun": {
                    "closed": bool(sun_closed),
                    "open": doc.get("sunOpen"),
                    "close": doc.get("sunClose"),
                },
            },
        })

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def _band(value: Optional[dict]) -> dict:
    if not value:
        return {"closed": True}
    return value


# ── Persistence ──────────────────────────────────────────────────────────


class ScheduleConfigRepository:
    """
    Loads and saves settings/default.

    The config is read-mostly, so loads are cached for ttl_seconds;
    save() refreshes the cache.
    """

    def __init__(
        self,
        store: DocumentStore,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: Optional[ScheduleConfig] = None
        self._loaded_at = 0.0

    def load(self) -> ScheduleConfig:
        now = self._clock()
        if self._cached is not None and now - self._loaded_at < self.ttl_seconds:
            return self._cached

        doc = self.store.get(SETTINGS_COLLECTION, SETTINGS_DOC_ID)
        config = self._parse(doc)

        self._cached = config
        self._loaded_at = now
        return config

    def watch(
        self,
        on_change: Callable[[ScheduleConfig], None],
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Follow settings/default: on_change gets the parsed config now and
        after every save, also from other processes. Refreshes the cache.
        """
        def on_snapshot(docs: list[dict[str, Any]]) -> None:
            doc = next((d for d in docs if d.get("id") == SETTINGS_DOC_ID), None)
            config = self._parse(doc)
            self._cached = config
            self._loaded_at = self._clock()
            on_change(config)

        return self.store.subscribe(SETTINGS_COLLECTION, on_snapshot, on_error)

    @staticmethod
    def _parse(doc: Optional[dict[str, Any]]) -> ScheduleConfig:
        if doc is None:
            logger.warning("No settings/default stored yet, using default shop hours")
            return ScheduleConfig()
        try:
            return ScheduleConfig.from_document(doc)
        except ValidationError as e:
            logger.error(f"Stored settings/default is invalid, using default shop hours: {e}")
            return ScheduleConfig()

    def save(self, config: ScheduleConfig) -> ScheduleConfig:
        self.store.set(SETTINGS_COLLECTION, SETTINGS_DOC_ID, config.to_document())
        logger.info(f"Schedule settings saved (slot={config.slot_duration_minutes}min)")
        self._cached = config
        self._loaded_at = self._clock()
        return config

    def invalidate(self) -> None:
        self._cached = None
