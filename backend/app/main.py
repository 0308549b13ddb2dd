# backend/app/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from redis.exceptions import RedisError

from .config import settings
from .redis_client import redis_client
from .routers import bookings, pricing, schedule, services, slots

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    tasks: list[asyncio.Task] = []

    if settings.email_enabled:
        from .notifications.consumer import email_consumer_loop, retry_consumer_loop

        tasks.append(asyncio.create_task(email_consumer_loop(settings.redis_url)))
        tasks.append(asyncio.create_task(retry_consumer_loop(settings.redis_url)))
        logger.info("Email consumers started")
    else:
        logger.info("Email delivery disabled, booking events are only logged")

    yield

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


app = FastAPI(title="Garage Booking API", lifespan=lifespan)

app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(schedule.router)
app.include_router(services.router)
app.include_router(pricing.router)


@app.get("/health")
def health():
    try:
        return {"redis": redis_client.ping()}
    except RedisError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Redis unavailable")
