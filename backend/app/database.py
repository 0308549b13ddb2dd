# backend/app/database.py
"""
Store wiring and FastAPI dependencies.

One document store per process; repositories are cheap wrappers around it.
"""

from functools import lru_cache

from .config import settings
from .models.documents import PRICING_COLLECTION, SERVICES_COLLECTION
from .redis_client import redis_client
from .services.catalog import CatalogRepository
from .services.events import LoggingNotifier, NotificationPort, RedisEventNotifier
from .services.reservations import ReservationCoordinator
from .services.slots import ScheduleConfigRepository
from .services.store import DocumentStore, RedisDocumentStore


@lru_cache
def get_store() -> DocumentStore:
    return RedisDocumentStore(redis_client)


@lru_cache
def get_notifier() -> NotificationPort:
    if settings.email_enabled:
        return RedisEventNotifier(redis_client)
    return LoggingNotifier()


@lru_cache
def get_schedule_repository() -> ScheduleConfigRepository:
    return ScheduleConfigRepository(get_store(), ttl_seconds=settings.schedule_cache_ttl)


def get_coordinator() -> ReservationCoordinator:
    return ReservationCoordinator(get_store(), get_notifier())


def get_services_repository() -> CatalogRepository:
    return CatalogRepository(get_store(), SERVICES_COLLECTION)


def get_pricing_repository() -> CatalogRepository:
    return CatalogRepository(get_store(), PRICING_COLLECTION)
