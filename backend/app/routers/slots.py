# backend/app/routers/slots.py
"""
Slots API endpoints.

GET /slots/availability - Bookable times for a day (one-shot)
WS  /slots/live         - Bookable times pushed on every slot change
GET /slots/locks        - Raw slot lock documents (admin/debug)
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from ..database import get_schedule_repository, get_store
from ..models.documents import SLOTS_COLLECTION
from ..schemas.slots import AvailabilityResponse, SlotRead
from ..services.slots import (
    Availability,
    AvailabilityView,
    ScheduleConfigRepository,
    canonical_date,
    compute_availability,
    parse_slot_id,
)
from ..services.store import DocumentStore, StoreError, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["slots"])


def _validate_params(target_date: str, exclude_slot: Optional[str]) -> str:
    """Return the canonical date; 400 on a malformed date or slot id."""
    try:
        day = canonical_date(target_date)
        if exclude_slot:
            parse_slot_id(exclude_slot)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return day


@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
    target_date: str = Query(..., alias="date"),
    exclude_slot: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    schedule: ScheduleConfigRepository = Depends(get_schedule_repository),
):
    """Candidates for the day narrowed by currently booked slots."""
    day = _validate_params(target_date, exclude_slot)
    try:
        config = schedule.load()
        locks = store.query(SLOTS_COLLECTION, date=day, booked=True)
    except StoreError as e:
        logger.error(f"Slots query failed: {e}")
        raise HTTPException(status_code=503, detail="Slots temporarily unavailable")

    availability = compute_availability(
        day,
        config,
        (doc["time"] for doc in locks),
        exclude_slot,
    )
    return AvailabilityResponse.from_availability(availability)


@router.get("/locks", response_model=list[SlotRead])
def list_slot_locks(
    target_date: str = Query(..., alias="date"),
    store: DocumentStore = Depends(get_store),
):
    """Slot lock documents for a date (admin/debug endpoint)."""
    day = _validate_params(target_date, None)
    try:
        return store.query(SLOTS_COLLECTION, date=day)
    except StoreError as e:
        logger.error(f"Slots query failed: {e}")
        raise HTTPException(status_code=503, detail="Slots temporarily unavailable")


@router.websocket("/live")
async def live_availability(
    websocket: WebSocket,
    target_date: str = Query(..., alias="date"),
    exclude_slot: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    schedule: ScheduleConfigRepository = Depends(get_schedule_repository),
):
    """
    Push an availability message for the date on every change.

    Follows both the day's slot locks and the shop schedule, so a saved
    schedule reaches connected clients without a reconnect. Store calls
    block, so they run in the threadpool.
    """
    await websocket.accept()

    try:
        day = _validate_params(target_date, exclude_slot)
    except HTTPException as e:
        await websocket.close(code=1008, reason=str(e.detail))
        return

    try:
        config = await run_in_threadpool(schedule.load)
    except StoreError as e:
        logger.error(f"Live availability failed: {e}")
        await websocket.close(code=1011)
        return

    loop = asyncio.get_running_loop()
    updates: asyncio.Queue[Availability] = asyncio.Queue()

    view = AvailabilityView(
        store,
        config,
        exclude_slot=exclude_slot,
        on_change=lambda a: loop.call_soon_threadsafe(updates.put_nowait, a),
    )
    settings_watch: Optional[Subscription] = None

    def close_all() -> None:
        view.close()
        if settings_watch is not None:
            settings_watch.unsubscribe()

    try:
        await run_in_threadpool(view.set_date, day)
        settings_watch = await run_in_threadpool(schedule.watch, view.set_config)
    except StoreError as e:
        logger.error(f"Live availability failed: {e}")
        await run_in_threadpool(close_all)
        await websocket.close(code=1011)
        return

    async def push_updates() -> None:
        while True:
            availability = await updates.get()
            response = AvailabilityResponse.from_availability(availability)
            await websocket.send_json(response.model_dump())

    sender = asyncio.create_task(push_updates())
    try:
        # Incoming messages are ignored; receiving detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Live availability client disconnected ({day})")
    finally:
        if sender.done() and not sender.cancelled() and sender.exception() is not None:
            logger.warning(f"Live availability push failed ({day}): {sender.exception()}")
        sender.cancel()
        await run_in_threadpool(close_all)
