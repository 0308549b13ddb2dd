# backend/app/services/reservations.py
"""
Slot reservation core.

Every state change is one store transaction touching exactly the slot
lock(s) and the booking:

  create      read slot → conflict? → write slot + booking
  cancel      read booking → release slot → status cancelled
  reschedule  read booking → [read new slot → release old → lock new] → write booking
  complete    read booking → status completed (slot stays locked)

The slot read inside the transaction is the serialization point: two
racing creates for one (date, time) cannot both commit, the loser is
re-run by the store and fails with SlotConflict.

Notifications are sent after commit and never affect the outcome.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar, Union
from uuid import uuid4

from pydantic import ValidationError

from ..models.documents import (
    BOOKINGS_COLLECTION,
    SLOTS_COLLECTION,
    BookingDoc,
    BookingStatus,
    SlotDoc,
)
from ..schemas.bookings import BookingCreate, BookingUpdate
from .errors import (
    BookingNotFound,
    BookingValidationError,
    InvalidBookingState,
    SlotConflict,
    StoreUnavailable,
)
from .events import BookingEvent, LoggingNotifier, NotificationPort, booking_payload
from .slots.config import slot_id
from .store import DocumentStore, StoreError, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

UPDATABLE_FIELDS = ("name", "phone", "email", "service", "price")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validation_error(e: ValidationError) -> BookingValidationError:
    errors = e.errors(include_url=False, include_context=False)
    message = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'booking'}: {err['msg']}" for err in errors
    )
    return BookingValidationError(message, errors)


class ReservationCoordinator:
    """Create, cancel and move bookings atomically with their slot locks."""

    def __init__(
        self,
        store: DocumentStore,
        notifier: Optional[NotificationPort] = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = lambda: uuid4().hex,
    ):
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._new_id = id_factory

    # ── Operations ───────────────────────────────────────────────────────

    def create(self, data: Union[BookingCreate, dict[str, Any]]) -> str:
        """
        Reserve (date, time) for a new booking.

        Returns:
            New booking id

        Raises:
            BookingValidationError: missing/malformed fields (no store call made)
            SlotConflict: the slot is already booked
            StoreUnavailable: transport/transaction failure
        """
        booking = self._validate_create(data)
        slot_key = slot_id(booking.date, booking.time)
        booking_id = self._new_id()

        def reserve(tx: Transaction) -> BookingDoc:
            slot = tx.get(SLOTS_COLLECTION, slot_key)
            if slot is not None and slot.get("booked"):
                raise SlotConflict(booking.date, booking.time)

            now = self._clock()
            tx.set(SLOTS_COLLECTION, slot_key, SlotDoc(
                date=booking.date,
                time=booking.time,
                booked=True,
                booking_id=booking_id,
                created_at=now,
            ).to_document())

            created = BookingDoc(
                id=booking_id,
                **booking.model_dump(),
                status=BookingStatus.BOOKED,
                slot_id=slot_key,
                created_at=now,
                updated_at=now,
            )
            tx.set(BOOKINGS_COLLECTION, booking_id, created.to_document())
            return created

        created = self._run(reserve)
        logger.info(f"Booking created: {booking_id} → slot {slot_key}")
        self._notify(BookingEvent.BOOKED, created)
        return booking_id

    def cancel(self, booking_id: str) -> BookingDoc:
        """
        Cancel an active booking and release its slot.

        Raises:
            BookingNotFound, InvalidBookingState, StoreUnavailable
        """
        def apply(tx: Transaction) -> BookingDoc:
            current = self._read_booking(tx, booking_id)
            if current.status != BookingStatus.BOOKED:
                raise InvalidBookingState(
                    f"Booking {booking_id} is {current.status.value}, only booked bookings can be cancelled"
                )

            self._release_slot(tx, current.slot_id, booking_id)
            cancelled = current.model_copy(update={
                "status": BookingStatus.CANCELLED,
                "slot_id": None,
                "updated_at": self._clock(),
            })
            tx.set(BOOKINGS_COLLECTION, booking_id, cancelled.to_document())
            return cancelled

        cancelled = self._run(apply)
        logger.info(f"Booking cancelled: {booking_id}")
        self._notify(BookingEvent.CANCELLED, cancelled)
        return cancelled

    def reschedule(
        self,
        booking_id: str,
        new_date: Optional[str] = None,
        new_time: Optional[str] = None,
        updates: Optional[dict[str, Any]] = None,
    ) -> BookingDoc:
        """
        Edit a booking, moving it to (new_date, new_time) when that differs
        from its current slot. None keeps the current date/time.

        Field-only edits are allowed in any status; a slot move requires
        status booked.

        Raises:
            BookingValidationError, BookingNotFound, InvalidBookingState,
            SlotConflict, StoreUnavailable
        """
        fields = self._validate_update(new_date, new_time, updates or {})

        def apply(tx: Transaction) -> tuple[BookingDoc, bool]:
            current = self._read_booking(tx, booking_id)
            # Contact fields are checked against the stored values, so this
            # part of validation needs the read
            if not fields.get("phone", current.phone) and not fields.get("email", current.email):
                raise BookingValidationError("Phone or email is required")

            target_date = fields.get("date", current.date)
            target_time = fields.get("time", current.time)
            moving = (target_date, target_time) != (current.date, current.time)

            if moving and current.status != BookingStatus.BOOKED:
                raise InvalidBookingState("Only active bookings may move slot")

            changes = {**fields, "updated_at": self._clock()}

            if moving:
                new_key = slot_id(target_date, target_time)
                destination = tx.get(SLOTS_COLLECTION, new_key)
                if (
                    destination is not None
                    and destination.get("booked")
                    and destination.get("booking_id") != booking_id
                ):
                    raise SlotConflict(target_date, target_time)

                self._release_slot(tx, current.slot_id, booking_id)
                tx.set(SLOTS_COLLECTION, new_key, SlotDoc(
                    date=target_date,
                    time=target_time,
                    booked=True,
                    booking_id=booking_id,
                    created_at=changes["updated_at"],
                ).to_document())
                changes["slot_id"] = new_key

            updated = current.model_copy(update=changes)

            tx.set(BOOKINGS_COLLECTION, booking_id, updated.to_document())
            return updated, moving

        updated, moved = self._run(apply)
        if moved:
            logger.info(f"Booking rescheduled: {booking_id} → slot {updated.slot_id}")
            self._notify(BookingEvent.RESCHEDULED, updated)
        else:
            logger.info(f"Booking updated: {booking_id}")
            self._notify(BookingEvent.UPDATED, updated)
        return updated

    def complete(self, booking_id: str) -> BookingDoc:
        """Mark a booked booking as completed. The slot stays locked."""
        def apply(tx: Transaction) -> BookingDoc:
            current = self._read_booking(tx, booking_id)
            if current.status != BookingStatus.BOOKED:
                raise InvalidBookingState(
                    f"Booking {booking_id} is {current.status.value}, only booked bookings can be completed"
                )
            completed = current.model_copy(update={
                "status": BookingStatus.COMPLETED,
                "updated_at": self._clock(),
            })
            tx.set(BOOKINGS_COLLECTION, booking_id, completed.to_document())
            return completed

        completed = self._run(apply)
        logger.info(f"Booking completed: {booking_id}")
        return completed

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, booking_id: str) -> BookingDoc:
        try:
            doc = self.store.get(BOOKINGS_COLLECTION, booking_id)
        except StoreError as e:
            raise StoreUnavailable(f"Booking store unavailable: {e}") from e
        if doc is None:
            raise BookingNotFound(booking_id)
        return BookingDoc.from_document(doc)

    def list_bookings(
        self,
        date: Optional[str] = None,
        status: Optional[BookingStatus] = None,
    ) -> list[BookingDoc]:
        """Bookings ordered by (date, time), optionally filtered."""
        filters: dict[str, Any] = {}
        if date:
            filters["date"] = date
        if status:
            filters["status"] = BookingStatus(status).value

        try:
            docs = self.store.query(BOOKINGS_COLLECTION, **filters)
        except StoreError as e:
            raise StoreUnavailable(f"Booking store unavailable: {e}") from e

        bookings = [BookingDoc.from_document(doc) for doc in docs]
        return sorted(bookings, key=lambda b: (b.date, b.time, b.created_at or datetime.min.replace(tzinfo=timezone.utc)))

    # ── Helpers ──────────────────────────────────────────────────────────

    def _run(self, fn: Callable[[Transaction], T]) -> T:
        try:
            return self.store.transaction(fn)
        except StoreError as e:
            logger.error(f"Reservation transaction failed: {e}")
            raise StoreUnavailable(f"Booking store unavailable: {e}") from e

    @staticmethod
    def _read_booking(tx: Transaction, booking_id: str) -> BookingDoc:
        doc = tx.get(BOOKINGS_COLLECTION, booking_id)
        if doc is None:
            raise BookingNotFound(booking_id)
        return BookingDoc.from_document(doc)

    @staticmethod
    def _release_slot(tx: Transaction, slot_key: Optional[str], booking_id: str) -> None:
        """Delete the booking's slot lock unless another booking owns it."""
        if not slot_key:
            return
        slot = tx.get(SLOTS_COLLECTION, slot_key)
        if slot is None:
            return
        owner = slot.get("booking_id")
        if owner not in (None, booking_id):
            logger.warning(
                f"Slot {slot_key} belongs to booking {owner}, not {booking_id}; leaving it locked"
            )
            return
        tx.delete(SLOTS_COLLECTION, slot_key)

    @staticmethod
    def _validate_create(data: Union[BookingCreate, dict[str, Any]]) -> BookingCreate:
        if isinstance(data, BookingCreate):
            return data
        try:
            return BookingCreate.model_validate(data)
        except ValidationError as e:
            raise _validation_error(e) from e

    @staticmethod
    def _validate_update(
        new_date: Optional[str],
        new_time: Optional[str],
        updates: dict[str, Any],
    ) -> dict[str, Any]:
        raw = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
        if new_date is not None:
            raw["date"] = new_date
        if new_time is not None:
            raw["time"] = new_time

        try:
            update = BookingUpdate.model_validate(raw)
        except ValidationError as e:
            raise _validation_error(e) from e

        fields = update.model_dump(exclude_unset=True)
        # name, date and time can change but never be cleared
        for required in ("name", "date", "time"):
            if fields.get(required, "") is None:
                fields.pop(required)
        if "phone" in fields and "email" in fields and not fields["phone"] and not fields["email"]:
            raise BookingValidationError("Phone or email is required")
        return fields

    def _notify(self, kind: BookingEvent, booking: BookingDoc) -> None:
        try:
            self.notifier.notify(kind, booking_payload(booking))
        except Exception:
            logger.exception(f"Notification {kind.value} failed for booking {booking.id}")
