"""
Bounded ring of the most recent records of one type.

Records may be pushed out of order; the ring keeps the `capacity` records with
the highest ordinal index it has seen, deduplicated by primary key. It also
remembers the store total it was last synchronized with, so a reader can tell
whether writers it never saw have changed the set since.
"""

from __future__ import annotations

import bisect
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from chainindex.domain.models import IndexedRecord


class RecentRing:
    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._lock = threading.Lock()
        # ascending by ordinal; parallel lists keep bisect simple
        self._ordinals: List[int] = []
        self._records: List[IndexedRecord] = []
        self._by_key: Dict[Tuple[Any, ...], int] = {}
        self.warm = False
        self.synced_total = 0

    def _add(self, record: IndexedRecord) -> None:
        ordinal = record.ordinal_index
        key = record.primary_key
        known = self._by_key.get(key)
        if known is not None:
            # same key keeps its first ordinal; only the payload refreshes
            pos = bisect.bisect_left(self._ordinals, known)
            self._records[pos] = record.with_ordinal(known)
            return
        if len(self._ordinals) >= self.capacity and ordinal <= self._ordinals[0]:
            return

        pos = bisect.bisect_left(self._ordinals, ordinal)
        self._ordinals.insert(pos, ordinal)
        self._records.insert(pos, record)
        self._by_key[key] = ordinal

        if len(self._ordinals) > self.capacity:
            self._ordinals.pop(0)
            dropped = self._records.pop(0)
            self._by_key.pop(dropped.primary_key, None)

    def push(self, record: IndexedRecord, inserted: bool = False) -> None:
        """
        Add or refresh a record; the lowest ordinal falls out when full.

        `inserted` marks a record that is new to the store, which moves the
        synchronized total along with it.
        """
        if self.capacity == 0:
            return
        with self._lock:
            if inserted and self.warm:
                self.synced_total += 1
            self._add(record)

    def refresh(self, record: IndexedRecord) -> None:
        """Replace the payload of a record the ring already holds."""
        with self._lock:
            if record.primary_key in self._by_key:
                self._add(record)

    def warm_up(self, records: Iterable[IndexedRecord], total: int) -> None:
        """Replace the contents with the newest records of a store holding `total`."""
        with self._lock:
            self._ordinals.clear()
            self._records.clear()
            self._by_key.clear()
            if self.capacity:
                for record in records:
                    self._add(record)
            self.synced_total = total
            self.warm = True

    def in_sync(self, top: Optional[int], total: int) -> bool:
        """True when the store's highest ordinal and total match what the ring saw."""
        with self._lock:
            if not self.warm or self.synced_total != total:
                return False
            return (self._ordinals[-1] if self._ordinals else None) == top

    def discard(self, record: IndexedRecord) -> None:
        with self._lock:
            ordinal = self._by_key.pop(record.primary_key, None)
            if ordinal is None:
                return
            pos = bisect.bisect_left(self._ordinals, ordinal)
            del self._ordinals[pos]
            del self._records[pos]

    def latest(self, count: int) -> List[IndexedRecord]:
        """Up to `count` records, newest first."""
        if count <= 0:
            return []
        with self._lock:
            return list(reversed(self._records[-count:]))

    def __len__(self) -> int:
        return len(self._ordinals)


__all__ = ["RecentRing"]
