# backend/app/routers/bookings.py
# Bookings are never deleted: cancel flips status and releases the slot.

import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import settings
from ..database import get_coordinator, get_schedule_repository
from ..models.documents import BookingStatus
from ..schemas.bookings import (
    BookingCreate,
    BookingRead,
    BookingUpdate,
)
from ..services.errors import ReservationError
from ..services.reservations import ReservationCoordinator
from ..services.slots import ScheduleConfigRepository, canonical_date, is_candidate
from ..services.store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _http_error(e: ReservationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def _shop_today() -> date:
    return datetime.now(ZoneInfo(settings.shop_timezone)).date()


def _ensure_bookable(
    target_date: str,
    target_time: str,
    schedule: ScheduleConfigRepository,
) -> None:
    """Public flow only offers future dates and generated start times."""
    if date.fromisoformat(target_date) < _shop_today():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Cannot book dates in the past",
        )
    try:
        config = schedule.load()
    except StoreError as e:
        logger.error(f"Schedule load failed: {e}")
        raise HTTPException(status_code=503, detail="Settings temporarily unavailable")
    if not is_candidate(target_date, target_time, config):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{target_time} is not an available start time on {target_date}",
        )


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    date: Optional[str] = None,
    status: Optional[BookingStatus] = None,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    if date is not None:
        try:
            date = canonical_date(date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    try:
        return coordinator.list_bookings(date=date, status=status)
    except ReservationError as e:
        raise _http_error(e)


@router.get("/{id}", response_model=BookingRead)
def get_booking(
    id: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    try:
        return coordinator.get(id)
    except ReservationError as e:
        raise _http_error(e)


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    schedule: ScheduleConfigRepository = Depends(get_schedule_repository),
):
    _ensure_bookable(data.date, data.time, schedule)

    try:
        booking_id = coordinator.create(data)
        return coordinator.get(booking_id)
    except ReservationError as e:
        if e.status_code == status.HTTP_409_CONFLICT:
            logger.info(f"Booking rejected: {e.message}")
        raise _http_error(e)


@router.put("/{id}", response_model=BookingRead)
def update_booking(
    id: str,
    data: BookingUpdate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    schedule: ScheduleConfigRepository = Depends(get_schedule_repository),
):
    """Edit fields and/or move the booking to another slot."""
    try:
        current = coordinator.get(id)
        new_date = data.date or current.date
        new_time = data.time or current.time
        if (new_date, new_time) != (current.date, current.time):
            _ensure_bookable(new_date, new_time, schedule)

        return coordinator.reschedule(
            id,
            new_date=data.date,
            new_time=data.time,
            updates=data.model_dump(exclude_unset=True, exclude={"date", "time"}),
        )
    except ReservationError as e:
        raise _http_error(e)


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(
    id: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    try:
        return coordinator.cancel(id)
    except ReservationError as e:
        raise _http_error(e)


@router.post("/{id}/complete", response_model=BookingRead)
def complete_booking(
    id: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    try:
        return coordinator.complete(id)
    except ReservationError as e:
        raise _http_error(e)


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
