"""
Read-through cache of records by primary key.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple

CacheKey = Tuple[str, Tuple[Any, ...]]


class RecordCache:
    """
    Thread-safe LRU keyed by `(record_type, primary_key)`.

    Misses are not cached, so a record stored after a failed lookup is found
    on the next read.
    """

    def __init__(self, max_entries: int) -> None:
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: Hashable, value: Any) -> None:
        if self.max_entries <= 0 or value is None:
            return
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def get_or_load(self, key: Hashable, loader: Callable[[], Optional[Any]]) -> Optional[Any]:
        """Serve from the cache, or call `loader` and remember a non-None result."""
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        self.put(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CacheKey", "RecordCache"]
