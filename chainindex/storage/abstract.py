"""
Storage capability interfaces for the chain index.

The listing engine and the reconcilers only talk to these protocols. Each
backend (PostgreSQL, in-memory) implements them once for every record type;
the record type travels as a `RecordSpec` argument.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import (
    Any,
    ContextManager,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from chainindex.domain.models import BurnLedgerEntry, IndexedRecord, Reserves, SwapState
from chainindex.domain.registry import RecordSpec


class BoundOp(str, enum.Enum):
    LE = "<="
    GE = ">="
    LT = "<"
    GT = ">"


@dataclass(frozen=True)
class OrdinalBound:
    """Range predicate on the ordinal index of a scan."""

    op: BoundOp
    value: int

    def admits(self, ordinal: int) -> bool:
        if self.op is BoundOp.LE:
            return ordinal <= self.value
        if self.op is BoundOp.GE:
            return ordinal >= self.value
        if self.op is BoundOp.LT:
            return ordinal < self.value
        return ordinal > self.value


@runtime_checkable
class RecordStore(Protocol):
    """
    Ordinal-indexed record storage.

    Filters handed to these methods are passed through from the caller; the
    store validates them against `spec.scope_fields` and raises
    `InvalidFilter` for anything else.
    """

    name: str

    def count_by_filter(self, spec: RecordSpec, filter: Mapping[str, Any]) -> int:
        """Number of records matching `filter`."""
        ...

    def border_ordinal(
        self, spec: RecordSpec, filter: Mapping[str, Any], highest: bool
    ) -> Optional[int]:
        """Highest (or lowest) ordinal matching `filter`, None for an empty set."""
        ...

    def lookup_ordinal(
        self, spec: RecordSpec, key: Tuple[Any, ...], filter: Mapping[str, Any]
    ) -> Optional[int]:
        """Ordinal of the record with `key` if it also matches `filter`."""
        ...

    def lookup_by_key(self, spec: RecordSpec, key: Tuple[Any, ...]) -> Optional[IndexedRecord]:
        ...

    def scan_by_ordinal(
        self,
        spec: RecordSpec,
        filter: Mapping[str, Any],
        bound: OrdinalBound,
        descending: bool,
        limit: int,
    ) -> List[IndexedRecord]:
        """Records matching `filter` and `bound`, sorted by ordinal, at most `limit`."""
        ...

    def upsert(self, record: IndexedRecord) -> bool:
        """
        Insert or refresh a record. The ordinal index is kept from the first
        insert. Returns True when the record was new.
        """
        ...

    def close(self) -> None:
        ...


class AbstractRecordStore(abc.ABC):
    """
    ABC helper for class-based record store implementations.
    """

    name: str

    @abc.abstractmethod
    def count_by_filter(self, spec: RecordSpec, filter: Mapping[str, Any]) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def border_ordinal(
        self, spec: RecordSpec, filter: Mapping[str, Any], highest: bool
    ) -> Optional[int]:
        raise NotImplementedError

    @abc.abstractmethod
    def lookup_ordinal(
        self, spec: RecordSpec, key: Tuple[Any, ...], filter: Mapping[str, Any]
    ) -> Optional[int]:
        raise NotImplementedError

    @abc.abstractmethod
    def lookup_by_key(self, spec: RecordSpec, key: Tuple[Any, ...]) -> Optional[IndexedRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    def scan_by_ordinal(
        self,
        spec: RecordSpec,
        filter: Mapping[str, Any],
        bound: OrdinalBound,
        descending: bool,
        limit: int,
    ) -> List[IndexedRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    def upsert(self, record: IndexedRecord) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. No-op by default."""


class BurnUnit(Protocol):
    """Read-modify-write access to one burn ledger entry while its key is locked."""

    def load(self) -> Optional[BurnLedgerEntry]:
        ...

    def insert(self, entry: BurnLedgerEntry) -> bool:
        """Insert a new entry; False if a concurrent writer inserted the key first."""
        ...

    def update(self, entry: BurnLedgerEntry) -> None:
        """Replace amount and transaction list together."""
        ...


class SwapUnit(Protocol):
    """Read-modify-write access to one swap state while its key is locked."""

    def load(self) -> Optional[SwapState]:
        ...

    def insert(self, swap: SwapState) -> bool:
        """Insert a new swap; False if a concurrent writer inserted the key first."""
        ...

    def update_reserves(self, reserves: Reserves) -> None:
        ...

    def delete(self) -> None:
        ...


@runtime_checkable
class LedgerStore(Protocol):
    """Aggregated ledger state maintained by the reconcilers."""

    def burn_unit(self, block_number: int) -> ContextManager[BurnUnit]:
        """Lock the burn entry of `block_number` for the duration of the context."""
        ...

    def swap_unit(self, key: str) -> ContextManager[SwapUnit]:
        """Lock the swap state with digest `key` for the duration of the context."""
        ...

    def burn_total(self) -> int:
        ...

    def burn_list(self, count: int) -> List[BurnLedgerEntry]:
        ...

    def burn_count(self) -> int:
        ...

    def swap_count(self) -> int:
        ...

    def last_known_swap_block(self) -> int:
        ...

    def update_last_known_swap_block(self, block_number: int) -> int:
        """Advance the marker (never backwards) and return its new value."""
        ...


__all__ = [
    "AbstractRecordStore",
    "BoundOp",
    "BurnUnit",
    "LedgerStore",
    "OrdinalBound",
    "RecordStore",
    "SwapUnit",
]
