"""Thread-safe least-recently-used cache of string values."""

from __future__ import annotations

import threading
from collections import OrderedDict


class LRUCache:
    """Fixed-capacity cache that drops the least recently used entry first.

    A capacity of zero behaves like a capacity of one: an entry is always
    stored, and the previous one is evicted to make room for it.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of entries kept."""
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> str | None:
        """Return the cached value and mark it most recently used, or ``None``."""
        with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def put(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key``, evicting the oldest entry if full."""
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                self._entries.move_to_end(key)
                return True
            if self._entries and len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
            self._entries[key] = value
            return True

    def remove(self, key: str) -> bool:
        """Drop ``key``; return whether it was cached."""
        with self._lock:
            return self._entries.pop(key, None) is not None