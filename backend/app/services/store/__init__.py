# backend/app/services/store/__init__.py
"""
Transactional document store.

The reservation core is written against DocumentStore; RedisDocumentStore
is the production implementation.
"""

from .base import (
    Document,
    DocumentStore,
    StoreConnectionError,
    StoreError,
    Subscription,
    Transaction,
    TransactionAborted,
)
from .redis_store import RedisDocumentStore, RedisSubscription, RedisTransaction

__all__ = [
    "Document",
    "DocumentStore",
    "StoreConnectionError",
    "StoreError",
    "Subscription",
    "Transaction",
    "TransactionAborted",
    "RedisDocumentStore",
    "RedisSubscription",
    "RedisTransaction",
]
