# backend/app/services/slots/availability.py
"""
Bookable time calculation.

candidates (calculator.py) minus times locked by live slot documents.
While a booking is being edited its own slot is excluded from the taken
set, so it does not block itself.

AvailabilityView keeps this result current for one client: it follows a
live query on slots for the chosen date, discards snapshots from queries
it already tore down, and drops the selected time as soon as it stops
being bookable.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import date
from functools import partial
from typing import Callable, Iterable, Optional, Union

from ...models.documents import SLOTS_COLLECTION
from ..store import DocumentStore, Subscription
from .calculator import as_date, generate_slots
from .config import ScheduleConfig, parse_slot_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Availability:
    date: Optional[str]
    candidates: tuple[str, ...]
    taken: frozenset[str]
    bookable: tuple[str, ...]
    selected: Optional[str] = None
    loading: bool = False
    slot_duration_minutes: int = 0

    @property
    def closed(self) -> bool:
        """No candidates at all: the shop is closed that day."""
        return not self.candidates


def _excluded_time(target_date: str, exclude_slot: Optional[str]) -> Optional[str]:
    if not exclude_slot:
        return None
    slot_date, slot_time = parse_slot_id(exclude_slot)
    return slot_time if slot_date == target_date else None


def compute_availability(
    target_date: Union[date, str],
    config: ScheduleConfig,
    taken: Iterable[str],
    exclude_slot: Optional[str] = None,
) -> Availability:
    """
    Narrow the day's candidates by the taken times.

    Args:
        target_date: Date to compute
        config: Shop schedule
        taken: "HH:MM" times currently locked on target_date
        exclude_slot: Slot id owned by the booking under edit, if any

    Returns:
        Availability; empty candidates means closed, never an error.
    """
    day = as_date(target_date).isoformat()
    candidates = tuple(generate_slots(day, config))

    taken_set = set(taken)
    excluded = _excluded_time(day, exclude_slot)
    if excluded is not None:
        taken_set.discard(excluded)

    bookable = tuple(t for t in candidates if t not in taken_set)
    return Availability(
        date=day,
        candidates=candidates,
        taken=frozenset(taken_set),
        bookable=bookable,
        slot_duration_minutes=config.slot_duration_minutes,
    )


class AvailabilityView:
    """
    Live availability for one client.

    Snapshots arrive on the store's listener thread; all state lives
    behind one lock and every snapshot is tagged with the epoch of the
    query that produced it.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: ScheduleConfig,
        exclude_slot: Optional[str] = None,
        on_change: Optional[Callable[[Availability], None]] = None,
    ):
        self.store = store
        self._config = config
        self._exclude_slot = exclude_slot
        self._on_change = on_change

        self._lock = threading.RLock()
        self._epoch = 0
        self._closed = False
        self._subscription: Optional[Subscription] = None

        self._date: Optional[str] = None
        self._live_taken: frozenset[str] = frozenset()
        self._pending: set[str] = set()
        self._selected: Optional[str] = None
        self._loading = False
        self._current = self._empty()

    # ── Inputs ───────────────────────────────────────────────────────────

    def set_date(self, target_date: Union[date, str, None]) -> None:
        with self._lock:
            new_date = as_date(target_date).isoformat() if target_date else None
            if new_date != self._date:
                # A selected time belongs to the day it was picked on
                self._selected = None
            self._date = new_date
        self._restart()

    def set_config(self, config: ScheduleConfig) -> None:
        with self._lock:
            if config == self._config:
                return
            self._config = config
        self._restart()

    def select(self, time_str: str) -> bool:
        """Select a time; only bookable times are accepted."""
        with self._lock:
            if time_str not in self._current.bookable:
                return False
            self._selected = time_str
            self._current = self._derive()
            current = self._current
        self._emit(current)
        return True

    def clear_selection(self) -> None:
        with self._lock:
            self._selected = None
            self._current = self._derive()

    def mark_pending(self, time_str: str) -> None:
        """
        Optimistically treat time_str as taken after a successful
        reservation, until a snapshot confirms it.
        """
        with self._lock:
            if self._date is None:
                return
            if time_str not in self._live_taken:
                self._pending.add(time_str)
            self._current = self._derive()
            current = self._current
        self._emit(current)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._epoch += 1
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    # ── State ────────────────────────────────────────────────────────────

    @property
    def availability(self) -> Availability:
        with self._lock:
            return self._current

    @property
    def config(self) -> ScheduleConfig:
        with self._lock:
            return self._config

    @property
    def selected(self) -> Optional[str]:
        with self._lock:
            return self._selected

    @property
    def pending(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    # ── Internals ────────────────────────────────────────────────────────

    def _empty(self) -> Availability:
        return Availability(
            date=None,
            candidates=(),
            taken=frozenset(),
            bookable=(),
            slot_duration_minutes=self._config.slot_duration_minutes,
        )

    def _derive(self) -> Availability:
        if self._date is None:
            self._selected = None
            return self._empty()

        base = compute_availability(
            self._date,
            self._config,
            self._live_taken | self._pending,
            self._exclude_slot,
        )
        if self._selected is not None and self._selected not in base.bookable:
            logger.info(f"Selected time {self._selected} on {self._date} is no longer bookable")
            self._selected = None

        return Availability(
            date=base.date,
            candidates=base.candidates,
            taken=base.taken,
            bookable=base.bookable,
            selected=self._selected,
            loading=self._loading,
            slot_duration_minutes=base.slot_duration_minutes,
        )

    def _restart(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._epoch += 1
            epoch = self._epoch
            old, self._subscription = self._subscription, None

            self._live_taken = frozenset()
            self._pending.clear()
            target = self._date
            needs_query = target is not None and bool(generate_slots(target, self._config))
            self._loading = needs_query
            self._current = self._derive()
            current = self._current

        if old is not None:
            old.unsubscribe()

        if not needs_query:
            self._emit(current)
            return

        subscription = self.store.subscribe(
            SLOTS_COLLECTION,
            on_snapshot=partial(self._on_snapshot, epoch),
            on_error=partial(self._on_error, epoch),
            date=target,
            booked=True,
        )

        with self._lock:
            if epoch == self._epoch:
                self._subscription = subscription
                subscription = None
        if subscription is not None:
            # Superseded while subscribing
            subscription.unsubscribe()

    def _on_snapshot(self, epoch: int, docs: list[dict]) -> None:
        taken = frozenset(
            doc["time"] for doc in docs if doc.get("booked") and doc.get("time")
        )
        with self._lock:
            if epoch != self._epoch:
                logger.debug(f"Discarding stale slots snapshot (epoch {epoch} != {self._epoch})")
                return
            self._live_taken = taken
            self._pending -= taken
            self._loading = False
            self._current = self._derive()
            current = self._current
        self._emit(current)

    def _on_error(self, epoch: int, exc: Exception) -> None:
        logger.error(f"Realtime slots subscription failed: {exc}")
        with self._lock:
            if epoch != self._epoch:
                return
            self._loading = False
            self._current = self._derive()
            current = self._current
        self._emit(current)

    def _emit(self, availability: Availability) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(availability)
        except Exception:
            logger.exception("Availability listener failed")
