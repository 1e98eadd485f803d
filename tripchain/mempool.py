"""Pool of pending items waiting to be placed in a block."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from itertools import islice
from typing import Protocol


class MempoolItem(Protocol):
    """Anything with a unique identifier can sit in a mempool."""

    @property
    def item_id(self) -> str: ...


class Mempool:
    """Thread-safe collection of pending items keyed by their id."""

    MAX_PENDING = 100

    def __init__(self) -> None:
        self._items: dict[str, MempoolItem] = {}
        self._lock = threading.RLock()

    def add(self, item: MempoolItem) -> None:
        """Add an item, replacing any with the same id."""
        with self._lock:
            self._items[item.item_id] = item

    def get(self, item_id: str) -> MempoolItem | None:
        """Return the item with this id, or None."""
        with self._lock:
            return self._items.get(item_id)

    def remove(self, item_id: str) -> None:
        """Remove the item with this id if present."""
        with self._lock:
            self._items.pop(item_id, None)

    def remove_processed(self, items: Iterable[MempoolItem]) -> None:
        """Remove every given item that has been put in a block."""
        with self._lock:
            for item in items:
                self._items.pop(item.item_id, None)

    def pending_items(self) -> list[MempoolItem]:
        """Return at most MAX_PENDING items ready for processing."""
        with self._lock:
            return list(islice(self._items.values(), self.MAX_PENDING))

    def all_items(self) -> list[MempoolItem]:
        """Return every item in the pool."""
        with self._lock:
            return list(self._items.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        """Remove all items."""
        with self._lock:
            self._items = {}