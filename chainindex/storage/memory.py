"""
In-memory storage backend.

Implements the record store and the ledger store with plain dictionaries. Used
by the unit tests and by `INDEX_BACKEND=memory` for local experiments; all
state is lost with the process.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Optional, Tuple

from chainindex.domain.models import BurnLedgerEntry, IndexedRecord, Reserves, SwapState
from chainindex.domain.registry import RecordSpec, get_spec, matches, normalize_filter, spec_for
from chainindex.errors import DuplicateOrdinal
from chainindex.storage.abstract import AbstractRecordStore, OrdinalBound

_Row = Tuple[int, IndexedRecord]

LAST_SWAP_BLOCK = "last_swap_block"


class InMemoryRecordStore(AbstractRecordStore):
    name: str = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: Dict[str, Dict[Tuple[Any, ...], _Row]] = {}
        self._owners: Dict[str, Dict[int, Tuple[Any, ...]]] = {}

    def _table(self, spec: RecordSpec) -> Dict[Tuple[Any, ...], _Row]:
        return self._tables.setdefault(spec.name, {})

    def _matching(self, spec: RecordSpec, filter: Mapping[str, Any]) -> List[_Row]:
        normalized = normalize_filter(spec, filter)
        with self._lock:
            rows = list(self._table(spec).values())
        return [row for row in rows if matches(row[1], normalized)]

    def count_by_filter(self, spec: RecordSpec, filter: Mapping[str, Any]) -> int:
        return len(self._matching(spec, filter))

    def border_ordinal(
        self, spec: RecordSpec, filter: Mapping[str, Any], highest: bool
    ) -> Optional[int]:
        ordinals = [ordinal for ordinal, _ in self._matching(spec, filter)]
        if not ordinals:
            return None
        return max(ordinals) if highest else min(ordinals)

    def lookup_ordinal(
        self, spec: RecordSpec, key: Tuple[Any, ...], filter: Mapping[str, Any]
    ) -> Optional[int]:
        normalized = normalize_filter(spec, filter)
        with self._lock:
            row = self._table(spec).get(tuple(key))
        if row is None or not matches(row[1], normalized):
            return None
        return row[0]

    def lookup_by_key(self, spec: RecordSpec, key: Tuple[Any, ...]) -> Optional[IndexedRecord]:
        with self._lock:
            row = self._table(spec).get(tuple(key))
        return row[1] if row is not None else None

    def scan_by_ordinal(
        self,
        spec: RecordSpec,
        filter: Mapping[str, Any],
        bound: OrdinalBound,
        descending: bool,
        limit: int,
    ) -> List[IndexedRecord]:
        rows = [row for row in self._matching(spec, filter) if bound.admits(row[0])]
        rows.sort(key=lambda row: row[0], reverse=descending)
        return [record for _, record in rows[:limit]]

    def _claim(self, spec: RecordSpec, ordinal: int, key: Tuple[Any, ...]) -> None:
        owners = self._owners.setdefault(spec.name, {})
        owner = owners.get(ordinal)
        if owner is not None and owner != key:
            raise DuplicateOrdinal(spec.name, ordinal)
        owners[ordinal] = key

    def upsert(self, record: IndexedRecord) -> bool:
        """
        Insert a record, or refresh the stored one of the same key.

        A refresh replaces the payload and scope values; the record keeps the
        ordinal of its first insert.
        """
        spec = spec_for(record)
        key = record.primary_key
        with self._lock:
            table = self._table(spec)
            known = table.get(key)
            if known is not None:
                table[key] = (known[0], record.with_ordinal(known[0]))
                return False
            ordinal = record.ordinal_index
            self._claim(spec, ordinal, key)
            table[key] = (ordinal, record)
            return True

    def insert_new(self, record: IndexedRecord) -> bool:
        """Insert only if the key is unknown."""
        spec = spec_for(record)
        key = record.primary_key
        with self._lock:
            table = self._table(spec)
            if key in table:
                return False
            ordinal = record.ordinal_index
            self._claim(spec, ordinal, key)
            table[key] = (ordinal, record)
            return True

    def delete(self, spec: RecordSpec, key: Tuple[Any, ...]) -> None:
        with self._lock:
            row = self._table(spec).pop(tuple(key), None)
            if row is not None:
                self._owners.get(spec.name, {}).pop(row[0], None)


class _MemoryBurnUnit:
    def __init__(self, burns: Dict[int, BurnLedgerEntry], block_number: int) -> None:
        self._burns = burns
        self._block = block_number

    def load(self) -> Optional[BurnLedgerEntry]:
        return self._burns.get(self._block)

    def insert(self, entry: BurnLedgerEntry) -> bool:
        if self._block in self._burns:
            return False
        self._burns[self._block] = entry
        return True

    def update(self, entry: BurnLedgerEntry) -> None:
        self._burns[self._block] = entry


class _MemorySwapUnit:
    def __init__(self, records: InMemoryRecordStore, key: str) -> None:
        self._records = records
        self._spec = get_spec("swap")
        self._key = (key,)

    def load(self) -> Optional[SwapState]:
        return self._records.lookup_by_key(self._spec, self._key)  # type: ignore[return-value]

    def insert(self, swap: SwapState) -> bool:
        return self._records.insert_new(swap)

    def update_reserves(self, reserves: Reserves) -> None:
        current = self.load()
        if current is not None:
            self._records.upsert(current.with_reserves(reserves))

    def delete(self) -> None:
        self._records.delete(self._spec, self._key)


class InMemoryLedgerStore:
    """
    Ledger state kept next to an `InMemoryRecordStore`; swap states live in
    the record store so they stay listable.
    """

    def __init__(self, records: InMemoryRecordStore) -> None:
        self._records = records
        self._burns: Dict[int, BurnLedgerEntry] = {}
        self._state: Dict[str, int] = {}
        self._guard = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            return self._key_locks.setdefault(key, threading.Lock())

    @contextmanager
    def burn_unit(self, block_number: int) -> Iterator[_MemoryBurnUnit]:
        with self._lock_for(("burn", block_number)):
            yield _MemoryBurnUnit(self._burns, block_number)

    @contextmanager
    def swap_unit(self, key: str) -> Iterator[_MemorySwapUnit]:
        with self._lock_for(("swap", key)):
            yield _MemorySwapUnit(self._records, key)

    def burn_total(self) -> int:
        return sum(entry.amount for entry in list(self._burns.values()))

    def burn_list(self, count: int) -> List[BurnLedgerEntry]:
        entries = sorted(list(self._burns.values()), key=lambda e: e.block_number, reverse=True)
        return entries[: max(count, 0)]

    def burn_count(self) -> int:
        return len(self._burns)

    def swap_count(self) -> int:
        return self._records.count_by_filter(get_spec("swap"), {})

    def last_known_swap_block(self) -> int:
        return self._state.get(LAST_SWAP_BLOCK, 0)

    def update_last_known_swap_block(self, block_number: int) -> int:
        with self._guard:
            value = max(self._state.get(LAST_SWAP_BLOCK, 0), block_number)
            self._state[LAST_SWAP_BLOCK] = value
            return value


__all__ = ["InMemoryLedgerStore", "InMemoryRecordStore"]
