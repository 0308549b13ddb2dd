# backend/app/routers/schedule.py
"""
Shop hours settings (single document settings/default).

GET /settings/schedule - current config (defaults when nothing is stored)
PUT /settings/schedule - replace the config; invalid bands → 422
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..database import get_schedule_repository
from ..services.slots import ScheduleConfig, ScheduleConfigRepository
from ..services.store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/schedule", response_model=ScheduleConfig)
def get_schedule(
    schedule: ScheduleConfigRepository = Depends(get_schedule_repository),
):
    try:
        return schedule.load()
    except StoreError as e:
        logger.error(f"Schedule load failed: {e}")
        raise HTTPException(status_code=503, detail="Settings temporarily unavailable")


@router.put("/schedule", response_model=ScheduleConfig)
def save_schedule(
    data: ScheduleConfig,
    schedule: ScheduleConfigRepository = Depends(get_schedule_repository),
):
    try:
        return schedule.save(data)
    except StoreError as e:
        logger.error(f"Schedule save failed: {e}")
        raise HTTPException(status_code=503, detail="Settings temporarily unavailable")
