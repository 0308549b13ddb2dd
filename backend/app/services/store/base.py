# backend/app/services/store/base.py
"""
Document store contract used by the reservation core.

A store keeps JSON documents addressed by (collection, id) and provides:
  - point reads and equality queries
  - all-or-nothing transactions (reads first, then buffered writes)
  - live queries: initial snapshot, then a new snapshot on every change

Documents returned by a store always carry their id under "id".
"""

from typing import Any, Callable, Optional, Protocol, TypeVar

Document = dict[str, Any]
T = TypeVar("T")

SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]


class StoreError(Exception):
    """Base class for store failures (not domain errors)."""


class StoreConnectionError(StoreError):
    """Backend unreachable or timed out."""


class TransactionAborted(StoreError):
    """Transaction kept colliding with concurrent writers and gave up."""


class Transaction(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    def set(self, collection: str, doc_id: str, data: Document) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    def query(self, collection: str, **equals: Any) -> list[Document]: ...

    def set(
        self,
        collection: str,
        doc_id: str,
        data: Document,
        merge: bool = False,
    ) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...

    def transaction(self, fn: Callable[[Transaction], T]) -> T: ...

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        **equals: Any,
    ) -> Subscription: ...
