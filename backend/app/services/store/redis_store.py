# backend/app/services/store/redis_store.py
"""
Redis document store.

Key format:
  doc:{collection}:{id}               JSON document (without "id")
  idx:{collection}:all                Set of document ids
  idx:{collection}:{field}:{value}    Set of ids, only for declared fields
Channel:
  changes:{collection}                id of every committed write

Transactions are optimistic: every key read inside a transaction is
WATCHed, writes are buffered and applied in one MULTI/EXEC block.
If a watched key changed in the meantime EXEC fails with WatchError and
the transaction function is run again from scratch.
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Optional

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from .base import (
    Document,
    ErrorCallback,
    SnapshotCallback,
    StoreConnectionError,
    StoreError,
    T,
    TransactionAborted,
)

logger = logging.getLogger(__name__)


DEFAULT_INDEXES: dict[str, tuple[str, ...]] = {
    "slots": ("date",),
    "bookings": ("date", "status"),
}
MAX_ATTEMPTS = 5


def _index_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@contextmanager
def _translate_errors():
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        raise StoreConnectionError(str(e)) from e


class RedisTransaction:
    """Read-then-write unit bound to one WATCHing pipeline."""

    def __init__(self, store: "RedisDocumentStore", pipe: Pipeline):
        self._store = store
        self._pipe = pipe
        # (collection, id) -> document, None means delete
        self._writes: dict[tuple[str, str], Optional[Document]] = {}

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        if (collection, doc_id) in self._writes:
            pending = self._writes[(collection, doc_id)]
            return None if pending is None else {**pending, "id": doc_id}

        key = self._store._key(collection, doc_id)
        self._pipe.watch(key)
        return self._store._decode(doc_id, self._pipe.get(key))

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        self._writes[(collection, doc_id)] = {
            k: v for k, v in data.items() if k != "id"
        }

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes[(collection, doc_id)] = None

    def commit(self) -> None:
        if not self._writes:
            return

        # Previous versions are needed to keep equality indexes in sync
        previous: dict[tuple[str, str], Optional[Document]] = {}
        for collection, doc_id in self._writes:
            key = self._store._key(collection, doc_id)
            self._pipe.watch(key)
            previous[(collection, doc_id)] = self._store._decode(
                doc_id, self._pipe.get(key)
            )

        self._pipe.multi()
        for (collection, doc_id), data in self._writes.items():
            self._store._queue_write(
                self._pipe, collection, doc_id, previous[(collection, doc_id)], data
            )
        self._pipe.execute()


class RedisSubscription:
    """
    Live query over one collection.

    Every message on changes:{collection} triggers a re-query; the callback
    fires only when the result differs from the last delivered snapshot.
    """

    def __init__(
        self,
        store: "RedisDocumentStore",
        collection: str,
        equals: dict[str, Any],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ):
        self._store = store
        self._collection = collection
        self._equals = equals
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._pubsub = store.redis.pubsub(ignore_subscribe_messages=True)
        self._thread = None
        self._lock = threading.Lock()
        self._last: Optional[list[Document]] = None
        self._closed = False

    def start(self, threaded: bool = True, poll_interval: float = 0.2) -> None:
        with _translate_errors():
            self._pubsub.subscribe(
                **{self._store._channel(self._collection): self._handle_message}
            )
        # Subscribe first so no change between snapshot and listen is lost
        self.refresh()
        if threaded:
            self._thread = self._pubsub.run_in_thread(
                sleep_time=poll_interval,
                daemon=True,
                exception_handler=self._handle_thread_error,
            )

    def poll(self, timeout: float = 0.01, max_messages: int = 10) -> None:
        """Process pending change messages in the calling thread."""
        for _ in range(max_messages):
            self._pubsub.get_message(timeout=timeout)

    def refresh(self) -> None:
        try:
            docs = self._store.query(self._collection, **self._equals)
        except StoreError as e:
            self._fail(e)
            return

        with self._lock:
            if self._closed or docs == self._last:
                return
            self._last = docs

        self._on_snapshot(docs)

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True

        if self._thread is not None:
            # Worker thread closes the pubsub connection on exit
            self._thread.stop()
        else:
            self._pubsub.close()

    def _handle_message(self, message: dict) -> None:
        self.refresh()

    def _handle_thread_error(self, exc: Exception, pubsub, thread) -> None:
        logger.error(f"Subscription on {self._collection} failed: {exc}")
        thread.stop()
        self._fail(exc)

    def _fail(self, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(exc)
        else:
            logger.error(f"Live query on {self._collection} failed: {exc}")


class RedisDocumentStore:
    """Redis-backed implementation of DocumentStore."""

    KEY_PREFIX = "doc"
    INDEX_PREFIX = "idx"
    CHANNEL_PREFIX = "changes"

    def __init__(
        self,
        redis: Redis,
        indexes: Optional[dict[str, tuple[str, ...]]] = None,
        max_attempts: int = MAX_ATTEMPTS,
        listen_in_thread: bool = True,
    ):
        self.redis = redis
        self.indexes = DEFAULT_INDEXES if indexes is None else indexes
        self.max_attempts = max_attempts
        self.listen_in_thread = listen_in_thread

    # ── Keys ─────────────────────────────────────────────────────────────

    def _key(self, collection: str, doc_id: str) -> str:
        return f"{self.KEY_PREFIX}:{collection}:{doc_id}"

    def _all_key(self, collection: str) -> str:
        return f"{self.INDEX_PREFIX}:{collection}:all"

    def _index_key(self, collection: str, field: str, value: Any) -> str:
        return f"{self.INDEX_PREFIX}:{collection}:{field}:{_index_value(value)}"

    def _channel(self, collection: str) -> str:
        return f"{self.CHANNEL_PREFIX}:{collection}"

    @staticmethod
    def _decode(doc_id: str, raw: Optional[str]) -> Optional[Document]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return {**json.loads(raw), "id": doc_id}

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with _translate_errors():
            return self._decode(doc_id, self.redis.get(self._key(collection, doc_id)))

    def query(self, collection: str, **equals: Any) -> list[Document]:
        """
        Equality query. Declared index fields narrow the candidate ids,
        remaining conditions are checked on the decoded documents.

        Returns documents sorted by id.
        """
        indexed = [f for f in equals if f in self.indexes.get(collection, ())]

        with _translate_errors():
            if indexed:
                ids = self.redis.sinter(
                    [self._index_key(collection, f, equals[f]) for f in indexed]
                )
            else:
                ids = self.redis.smembers(self._all_key(collection))

            ids = sorted(i.decode() if isinstance(i, bytes) else i for i in ids)
            if not ids:
                return []
            raws = self.redis.mget([self._key(collection, i) for i in ids])

        docs = []
        for doc_id, raw in zip(ids, raws):
            doc = self._decode(doc_id, raw)
            if doc is None:
                continue
            if all(doc.get(field) == value for field, value in equals.items()):
                docs.append(doc)
        return docs

    # ── Write ────────────────────────────────────────────────────────────

    def set(
        self,
        collection: str,
        doc_id: str,
        data: Document,
        merge: bool = False,
    ) -> None:
        def write(tx: RedisTransaction) -> None:
            if merge:
                current = tx.get(collection, doc_id) or {}
                tx.set(collection, doc_id, {**current, **data})
            else:
                tx.set(collection, doc_id, data)

        self.transaction(write)

    def delete(self, collection: str, doc_id: str) -> None:
        self.transaction(lambda tx: tx.delete(collection, doc_id))

    def transaction(self, fn: Callable[[RedisTransaction], T]) -> T:
        """
        Run fn inside an optimistic transaction.

        fn may be called several times; it must not have side effects
        outside the transaction object. Exceptions raised by fn abort the
        transaction and propagate unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                with _translate_errors(), self.redis.pipeline() as pipe:
                    tx = RedisTransaction(self, pipe)
                    result = fn(tx)
                    tx.commit()
                    return result
            except WatchError:
                logger.info(
                    f"Transaction collided with a concurrent write "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

        raise TransactionAborted(
            f"Transaction aborted after {self.max_attempts} attempts"
        )

    def _queue_write(
        self,
        pipe: Pipeline,
        collection: str,
        doc_id: str,
        previous: Optional[Document],
        data: Optional[Document],
    ) -> None:
        fields = self.indexes.get(collection, ())

        if previous is not None:
            for field in fields:
                if previous.get(field) is not None:
                    pipe.srem(self._index_key(collection, field, previous[field]), doc_id)

        if data is None:
            pipe.delete(self._key(collection, doc_id))
            pipe.srem(self._all_key(collection), doc_id)
        else:
            pipe.set(self._key(collection, doc_id), json.dumps(data))
            pipe.sadd(self._all_key(collection), doc_id)
            for field in fields:
                if data.get(field) is not None:
                    pipe.sadd(self._index_key(collection, field, data[field]), doc_id)

        pipe.publish(self._channel(collection), doc_id)

    # ── Live queries ─────────────────────────────────────────────────────

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        **equals: Any,
    ) -> RedisSubscription:
        """
        Deliver the current result of query(collection, **equals) now,
        then again whenever it changes, until unsubscribe().
        """
        subscription = RedisSubscription(self, collection, equals, on_snapshot, on_error)
        subscription.start(threaded=self.listen_in_thread)
        return subscription
