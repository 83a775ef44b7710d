"""
Repository: the context object bundling a backend with the engine, the caches
and the reconcilers.

Usage (example):
    from chainindex.repository import build_repository

    with build_repository() as repo:
        page = repo.list("transaction", {"sender": "0xabc..."}, count=25)
        older = repo.list("transaction", page.filter, cursor=page.last_cursor, count=25)

Backends are registered in `_backend_factories()`; `INDEX_BACKEND` selects one.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from chainindex.cache import RecentRing, RecordCache
from chainindex.config import Settings, get_settings
from chainindex.domain.models import BurnLedgerEntry, IndexedRecord, SwapState
from chainindex.domain.ordinal import OrdinalUnavailable
from chainindex.domain.registry import RECORD_SPECS, Filter, get_spec, spec_for
from chainindex.errors import RecordNotFound
from chainindex.pagination.engine import ListingEngine
from chainindex.pagination.result import ListResult
from chainindex.reconcile.burn import BurnOutcome, BurnReconciler
from chainindex.reconcile.swap import SwapMergeResult, SwapOutcome, SwapReconciler
from chainindex.storage.abstract import LedgerStore, RecordStore
from chainindex.storage.db_factory import get_sync_pool
from chainindex.storage.memory import InMemoryLedgerStore, InMemoryRecordStore
from chainindex.storage.postgres import PostgresLedgerStore, PostgresRecordStore
from chainindex.utils.logging import get_logger

log = get_logger(__name__)

BURN_TOTAL_KEY = ("burn_total", ())

Backend = Tuple[RecordStore, LedgerStore]


class Repository:
    """
    Entry point of the index.

    Parameters
    ----------
    records : RecordStore
        Backend of the listable records.
    ledger : LedgerStore
        Backend of the burn ledger and swap merges; shares storage with `records`.
    max_page_size : int
        Upper bound of `abs(count)` accepted by `list`.
    recent_ring_size : int
        Capacity of the per-type ring of most recent records; 0 disables it.
    record_cache_size : int
        Entries of the read-through point lookup cache; 0 disables it.
    """

    def __init__(
        self,
        records: RecordStore,
        ledger: LedgerStore,
        max_page_size: int = 1000,
        recent_ring_size: int = 200,
        record_cache_size: int = 10_000,
    ) -> None:
        self.records = records
        self.ledger = ledger
        self.recent: Dict[str, RecentRing] = (
            {name: RecentRing(recent_ring_size) for name in RECORD_SPECS}
            if recent_ring_size > 0
            else {}
        )
        self.cache = RecordCache(record_cache_size)
        self.engine = ListingEngine(records, max_page_size=max_page_size, recent=self.recent)
        self.burns = BurnReconciler(ledger)
        self.swaps = SwapReconciler(ledger)

    # Listing and point lookups

    def list(
        self,
        record_type: str,
        filter: Optional[Filter] = None,
        cursor: Optional[str] = None,
        count: int = 25,
    ) -> ListResult:
        return self.engine.list(record_type, filter, cursor, count)

    def get(self, record_type: str, key: Sequence[Any]) -> IndexedRecord:
        """
        Load one record by primary key.

        Raises
        ------
        UnknownRecordType, RecordNotFound
        """
        spec = get_spec(record_type)
        key = tuple(key)
        record = self.cache.get_or_load(
            (spec.name, key), lambda: self.records.lookup_by_key(spec, key)
        )
        if record is None:
            raise RecordNotFound(spec.name, key)
        return record

    def _remember(self, record: IndexedRecord, created: bool) -> None:
        ring = self.recent.get(record.record_type)
        if ring is not None:
            if created:
                ring.push(record, inserted=True)
            else:
                ring.refresh(record)
        self.cache.invalidate((record.record_type, record.primary_key))

    def store(self, record: IndexedRecord) -> bool:
        """
        Insert or refresh a record.

        Returns True when the record was new. A refreshed record keeps the ordinal
        of its first insert. Raises `OrdinalUnavailable` for pending records,
        which are not indexed until they are final, and `DuplicateOrdinal` when
        another record already holds the position.
        """
        created = self.records.upsert(record)
        self._remember(record, created)
        log.debug(
            "%s %s", record.record_type, "stored" if created else "refreshed",
            extra={"key": spec_for(record).key_to_str(record.primary_key)},
        )
        return created

    # Burn ledger

    def store_burn(self, entry: BurnLedgerEntry) -> BurnOutcome:
        outcome = self.burns.merge_burn(entry)
        if outcome is not BurnOutcome.ALREADY_APPLIED:
            self.cache.invalidate(BURN_TOTAL_KEY)
        return outcome

    def burn_total(self) -> int:
        return self.cache.get_or_load(BURN_TOTAL_KEY, self.ledger.burn_total)

    def burn_list(self, count: int) -> List[BurnLedgerEntry]:
        return self.ledger.burn_list(count)

    def burn_count(self) -> int:
        return self.ledger.burn_count()

    # Swap ledger

    def store_swap(self, swap: SwapState) -> SwapMergeResult:
        result = self.swaps.merge_swap(swap)
        if result.outcome in (SwapOutcome.DROPPED_ZERO, SwapOutcome.ALREADY_KNOWN):
            return result

        spec = get_spec("swap")
        key = (swap.swap_key,)
        stored = self.records.lookup_by_key(spec, key)
        ring = self.recent.get(spec.name)
        if ring is not None and stored is not None:
            if result.outcome is SwapOutcome.TRANSPLANTED:
                # the placeholder had a different ordinal
                ring.discard(stored)
            ring.push(stored, inserted=result.outcome is SwapOutcome.INSERTED)
        self.cache.invalidate((spec.name, key))
        return result

    def swap_count(self) -> int:
        return self.ledger.swap_count()

    def last_known_swap_block(self) -> int:
        return self.ledger.last_known_swap_block()

    def update_last_known_swap_block(self, block_number: int) -> int:
        return self.ledger.update_last_known_swap_block(block_number)

    # Ingestion

    def ingest(self, event: Mapping[str, Any]) -> str:
        """
        Route one decoded event to the matching operation.

        The event is a mapping with a ``kind`` of ``burn``, ``swap`` or a
        registered record type; the remaining fields are the model's fields.

        Returns
        -------
        str
            Outcome label: a `BurnOutcome` / `SwapOutcome` value, ``inserted``
            or ``updated`` for records, ``pending`` for skipped pending records.

        Raises
        ------
        UnknownRecordType
            If ``kind`` is missing or not registered.
        pydantic.ValidationError
            If the fields do not validate against the model.
        PartialBurnUpdateRejected
            For a burn that overlaps the stored entry only partially.
        """
        payload = dict(event)
        kind = payload.pop("kind", None)

        if kind == "burn":
            return self.store_burn(BurnLedgerEntry.model_validate(payload)).value

        if kind == "swap":
            swap = SwapState.model_validate(payload)
            result = self.store_swap(swap)
            if swap.block_number is not None:
                self.update_last_known_swap_block(swap.block_number)
            return result.outcome.value

        spec = get_spec(str(kind))
        record = spec.load(payload)
        try:
            created = self.store(record)
        except OrdinalUnavailable:
            log.debug("pending %s skipped", spec.name)
            return "pending"
        return "inserted" if created else "updated"

    def close(self) -> None:
        self.records.close()

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _memory_backend(settings: Settings) -> Backend:
    records = InMemoryRecordStore()
    return records, InMemoryLedgerStore(records)


def _postgres_backend(settings: Settings) -> Backend:
    pool = get_sync_pool(settings=settings)
    return PostgresRecordStore(pool), PostgresLedgerStore(pool)


def _backend_factories() -> Dict[str, Callable[[Settings], Backend]]:
    """Registry of available storage backends."""
    return {
        "memory": _memory_backend,
        "postgres": _postgres_backend,
    }


def available_backends() -> List[str]:
    """List registered backend names."""
    return sorted(_backend_factories().keys())


def build_repository(
    settings: Optional[Settings] = None, backend: Optional[str] = None
) -> Repository:
    """
    Build a repository on the configured backend.

    Parameters
    ----------
    settings : Settings | None
        Defaults to the cached `get_settings()`.
    backend : str | None
        Overrides `settings.backend`.
    """
    settings = settings or get_settings()
    name = backend or settings.backend
    factories = _backend_factories()
    if name not in factories:
        raise ValueError(f"Unknown backend '{name}'. Available: {', '.join(available_backends())}")

    records, ledger = factories[name](settings)
    log.info("repository ready", extra={"backend": name})
    return Repository(
        records,
        ledger,
        max_page_size=settings.max_page_size,
        recent_ring_size=settings.recent_ring_size,
        record_cache_size=settings.record_cache_size,
    )


__all__ = ["Repository", "available_backends", "build_repository"]
