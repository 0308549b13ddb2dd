# backend/app/services/catalog.py
"""
Service and pricing cards shown on the public page.

Both collections share the same mechanics:
  - listed by "order" ascending
  - new cards are placed last (max order + 1000)
  - move up/down swaps "order" with the neighbour in one transaction
  - active flag toggles visibility on the public page
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Optional
from uuid import uuid4

from .errors import CatalogItemNotFound, StoreUnavailable
from .store import DocumentStore, StoreError, Transaction

logger = logging.getLogger(__name__)

ORDER_STEP = 1000


def next_order(items: list[dict[str, Any]]) -> int:
    """Order value that places a new card after all existing ones."""
    if not items:
        return ORDER_STEP
    return max(item.get("order") or 0 for item in items) + ORDER_STEP


class CatalogRepository:
    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.collection = collection
        self._clock = clock

    def list(self, active_only: bool = False) -> list[dict[str, Any]]:
        filters = {"active": True} if active_only else {}
        try:
            items = self.store.query(self.collection, **filters)
        except StoreError as e:
            raise StoreUnavailable(f"Catalog store unavailable: {e}") from e
        return sorted(items, key=lambda item: (item.get("order") or 0, item["id"]))

    def get(self, item_id: str) -> dict[str, Any]:
        try:
            item = self.store.get(self.collection, item_id)
        except StoreError as e:
            raise StoreUnavailable(f"Catalog store unavailable: {e}") from e
        if item is None:
            raise CatalogItemNotFound(self.collection, item_id)
        return item

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        item_id = uuid4().hex
        now = self._timestamp()
        doc = {
            **data,
            "order": next_order(self.list()),
            "created_at": now,
            "updated_at": now,
        }
        self._run(lambda tx: tx.set(self.collection, item_id, doc))
        logger.info(f"{self.collection} item created: {item_id}")
        return {**doc, "id": item_id}

    def update(self, item_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        def apply(tx: Transaction) -> dict[str, Any]:
            current = tx.get(self.collection, item_id)
            if current is None:
                raise CatalogItemNotFound(self.collection, item_id)
            updated = {**current, **changes, "updated_at": self._timestamp()}
            tx.set(self.collection, item_id, updated)
            return updated

        return self._run(apply)

    def toggle(self, item_id: str) -> dict[str, Any]:
        def apply(tx: Transaction) -> dict[str, Any]:
            current = tx.get(self.collection, item_id)
            if current is None:
                raise CatalogItemNotFound(self.collection, item_id)
            updated = {
                **current,
                "active": not current.get("active", True),
                "updated_at": self._timestamp(),
            }
            tx.set(self.collection, item_id, updated)
            return updated

        return self._run(apply)

    def delete(self, item_id: str) -> None:
        def apply(tx: Transaction) -> None:
            if tx.get(self.collection, item_id) is None:
                raise CatalogItemNotFound(self.collection, item_id)
            tx.delete(self.collection, item_id)

        self._run(apply)
        logger.info(f"{self.collection} item deleted: {item_id}")

    def move(self, item_id: str, direction: Literal["up", "down"]) -> bool:
        """
        Swap the card with its neighbour.

        Returns:
            False when the card is already first/last.
        """
        items = self.list()
        idx = next((i for i, item in enumerate(items) if item["id"] == item_id), None)
        if idx is None:
            raise CatalogItemNotFound(self.collection, item_id)

        swap_idx = idx - 1 if direction == "up" else idx + 1
        if swap_idx < 0 or swap_idx >= len(items):
            return False

        neighbour_id = items[swap_idx]["id"]

        def apply(tx: Transaction) -> None:
            a = tx.get(self.collection, item_id)
            b = tx.get(self.collection, neighbour_id)
            if a is None:
                raise CatalogItemNotFound(self.collection, item_id)
            if b is None:
                raise CatalogItemNotFound(self.collection, neighbour_id)
            now = self._timestamp()
            tx.set(self.collection, item_id, {**a, "order": b.get("order"), "updated_at": now})
            tx.set(self.collection, neighbour_id, {**b, "order": a.get("order"), "updated_at": now})

        self._run(apply)
        return True

    def _run(self, fn: Callable[[Transaction], Any]) -> Any:
        try:
            return self.store.transaction(fn)
        except StoreError as e:
            raise StoreUnavailable(f"Catalog store unavailable: {e}") from e

    def _timestamp(self) -> str:
        return self._clock().isoformat()
