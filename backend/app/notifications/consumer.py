"""
Booking email queue workers.

email_consumer_loop pops booking events off events:p2p and sends one
email per event. A failed send goes to events:p2p:retry with an
incremented _attempt; retry_consumer_loop feeds that list back into
events:p2p every few seconds. After MAX_RETRIES sends the event is
parked on events:p2p:dead for manual inspection.

Both loops run as asyncio tasks from the app lifespan when EMAIL_ENABLED
is set.
"""

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as aioredis

from ..services.events import EVENTS_QUEUE
from .email import ResendEmailSender, get_email_sender

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_QUEUE = f"{EVENTS_QUEUE}:retry"
DEAD_QUEUE = f"{EVENTS_QUEUE}:dead"

POP_TIMEOUT = 5
ERROR_PAUSE = 2.0


async def email_consumer_loop(
    redis_url: str,
    sender: Optional[ResendEmailSender] = None,
) -> None:
    """Send booking emails until cancelled."""
    sender = sender or get_email_sender()
    r = aioredis.from_url(redis_url, decode_responses=True)
    logger.info(f"Booking email worker listening on {EVENTS_QUEUE}")

    try:
        while True:
            try:
                popped = await r.brpop(EVENTS_QUEUE, timeout=POP_TIMEOUT)
                if popped is not None:
                    await _process_event_safe(r, popped[1], sender, RETRY_QUEUE, DEAD_QUEUE)
            except asyncio.CancelledError:
                logger.info("Booking email worker stopped")
                raise
            except Exception:
                logger.exception(f"Booking email worker error, pausing {ERROR_PAUSE}s")
                await asyncio.sleep(ERROR_PAUSE)
    finally:
        await r.aclose()


async def _process_event_safe(
    r: aioredis.Redis,
    raw: str,
    sender: ResendEmailSender,
    retry_queue: str = RETRY_QUEUE,
    dead_queue: str = DEAD_QUEUE,
) -> None:
    """Send the email for one raw queue message; never raises on send failure."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.error(f"Unreadable booking event parked on {dead_queue}: {raw[:200]}")
        await r.rpush(dead_queue, raw)
        return

    attempt = data.get("_attempt", 1)
    try:
        from . import process_event
        await process_event(data, sender)
    except Exception as e:
        logger.error(
            f"Booking email '{data.get('type')}' to {data.get('email')} failed "
            f"on attempt {attempt}/{MAX_RETRIES}: {e}"
        )
        await _requeue(r, data, attempt, retry_queue, dead_queue)


async def _requeue(
    r: aioredis.Redis,
    data: dict,
    attempt: int,
    retry_queue: str,
    dead_queue: str,
) -> None:
    if attempt >= MAX_RETRIES:
        await r.rpush(dead_queue, json.dumps(data))
        logger.warning(
            f"Giving up on booking email '{data.get('type')}' for "
            f"{data.get('date')} {data.get('time')}, parked on {dead_queue}"
        )
        return

    data["_attempt"] = attempt + 1
    await r.rpush(retry_queue, json.dumps(data))


async def move_retries(r: aioredis.Redis) -> int:
    """Move every waiting event from the retry queue to the main queue."""
    moved = 0
    while True:
        raw = await r.lpop(RETRY_QUEUE)
        if not raw:
            return moved
        await r.rpush(EVENTS_QUEUE, raw)
        moved += 1


async def retry_consumer_loop(redis_url: str, interval: float = 5.0) -> None:
    """Give failed booking emails another try, one batch per interval."""
    r = aioredis.from_url(redis_url, decode_responses=True)
    logger.info(f"Booking email retry worker draining {RETRY_QUEUE} every {interval}s")

    try:
        while True:
            try:
                moved = await move_retries(r)
                if moved:
                    logger.info(f"Re-sending {moved} booking email(s)")
            except asyncio.CancelledError:
                logger.info("Booking email retry worker stopped")
                raise
            except Exception:
                logger.exception("Booking email retry worker error")
            await asyncio.sleep(interval)
    finally:
        await r.aclose()
