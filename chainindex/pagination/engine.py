"""
Ordinal-indexed keyset pagination.

One engine serves every record type. A page request is `(filter, cursor,
count)`; the sign of `count` is the scan direction:

- `count > 0`: start at the top (newest, highest ordinal) or right below the
  cursor record, and scan towards older records.
- `count < 0`: start at the bottom (oldest, lowest ordinal) or right above the
  cursor record, and scan towards newer records.

Pages are always returned newest first. The engine holds no locks: the store is
the only synchronization point, and the page window and `total` are resolved by
independent queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from chainindex.cache.ring import RecentRing
from chainindex.domain.registry import Filter, RecordSpec, get_spec
from chainindex.errors import InvalidPageSize, RecordNotFound
from chainindex.pagination.cursor import Cursor, CursorCodec
from chainindex.pagination.result import ListResult
from chainindex.storage.abstract import BoundOp, OrdinalBound, RecordStore
from chainindex.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class RangeMarks:
    """Starting ordinal of a scan and the boundary flags known before it runs."""

    first: int
    is_start: bool = False
    is_end: bool = False
    empty: bool = False


def ordinal_bound(cursor: Optional[Cursor], count: int, first: int) -> OrdinalBound:
    """
    Range predicate of a scan starting at `first`.

    Without a cursor the start record itself is part of the page; with a cursor
    it was already served by the previous page and is excluded.
    """
    if cursor is None:
        return OrdinalBound(BoundOp.LE if count > 0 else BoundOp.GE, first)
    return OrdinalBound(BoundOp.LT if count > 0 else BoundOp.GT, first)


class RangeResolver:
    """Find the starting ordinal of a page."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def resolve(
        self,
        spec: RecordSpec,
        filter: Mapping[str, Any],
        cursor: Optional[Cursor],
        count: int,
    ) -> RangeMarks:
        """
        Resolve the start of a scan.

        Parameters
        ----------
        spec : RecordSpec
            Record type being listed.
        filter : Mapping
            Scope of the listing, passed to the store untouched.
        cursor : Cursor | None
            Decoded cursor, or None to start at the edge of the set.
        count : int
            Signed page size.

        Returns
        -------
        RangeMarks
            Without a cursor: the extreme ordinal in the scan direction, with
            the matching boundary flag set (`empty` if nothing matches). With a
            cursor: the cursor record's ordinal, no flags.

        Raises
        ------
        RecordNotFound
            If the cursor record is gone or no longer matches the filter.
        """
        if cursor is None:
            first = self._store.border_ordinal(spec, filter, highest=count > 0)
            if first is None:
                return RangeMarks(first=0, is_start=True, is_end=True, empty=True)
            if count > 0:
                return RangeMarks(first=first, is_start=True)
            return RangeMarks(first=first, is_end=True)

        first = self._store.lookup_ordinal(spec, cursor.key, filter)
        if first is None:
            raise RecordNotFound(spec.name, cursor.key)
        return RangeMarks(first=first)


class ListLoader:
    """Run the bounded scan and build the page."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def load(
        self,
        spec: RecordSpec,
        filter: Mapping[str, Any],
        cursor: Optional[Cursor],
        count: int,
        marks: RangeMarks,
    ) -> ListResult:
        size = abs(count)
        bound = ordinal_bound(cursor, count, marks.first)
        log.debug(
            "%s list scan from ordinal %s %d", spec.name, bound.op.value, bound.value,
            extra={"record_type": spec.name, "count": count},
        )

        # one extra record tells us whether the set continues past the page
        rows = self._store.scan_by_ordinal(
            spec, filter, bound, descending=count > 0, limit=size + 1
        )
        exhausted = len(rows) <= size

        result = ListResult(
            record_type=spec.name,
            collection=list(rows[:size]),
            total=self._store.count_by_filter(spec, filter),
            first=marks.first,
            last=marks.first,
            is_start=(cursor is None and count > 0) or (count < 0 and exhausted),
            is_end=(cursor is None and count < 0) or (count > 0 and exhausted),
            filter=dict(filter),
        )
        if result.collection:
            result.first = result.collection[0].ordinal_index
            result.last = result.collection[-1].ordinal_index

        # backward scans come out oldest first; serve them newest first
        if count < 0:
            result.reverse()
        return result


class ListingEngine:
    """
    The `list(filter, cursor, count)` contract shared by every record type.

    Parameters
    ----------
    store : RecordStore
        Backend providing ordinal scans, counts and point lookups.
    max_page_size : int
        Upper bound of `abs(count)`.
    recent : Mapping[str, RecentRing] | None
        Optional per record type rings of the most recent records, used to
        serve unfiltered "newest N" pages without a scan.
    """

    def __init__(
        self,
        store: RecordStore,
        max_page_size: int = 1000,
        recent: Optional[Mapping[str, RecentRing]] = None,
    ) -> None:
        self.store = store
        self.max_page_size = max_page_size
        self.recent = recent or {}
        self.resolver = RangeResolver(store)
        self.loader = ListLoader(store)

    def _check_count(self, count: int) -> None:
        if count == 0:
            raise InvalidPageSize("count must not be zero")
        if abs(count) > self.max_page_size:
            raise InvalidPageSize(
                f"count {count} exceeds the maximum page size {self.max_page_size}"
            )

    def _from_ring(self, spec: RecordSpec, count: int) -> Optional[ListResult]:
        ring = self.recent.get(spec.name)
        if ring is None or count > ring.capacity:
            return None
        # writers outside this engine show up as a moved top ordinal or total
        top = self.store.border_ordinal(spec, {}, highest=True)
        total = self.store.count_by_filter(spec, {})
        if not ring.in_sync(top, total):
            seed = (
                []
                if top is None
                else self.store.scan_by_ordinal(
                    spec, {}, ordinal_bound(None, 1, top), descending=True, limit=ring.capacity
                )
            )
            ring.warm_up(seed, total)
            log.debug("%s recent ring warmed", spec.name, extra={"records": len(seed)})
        items = ring.latest(count)
        if len(items) < count:
            return None

        log.debug("%s list served from recent ring", spec.name, extra={"count": count})
        return ListResult(
            record_type=spec.name,
            collection=items,
            total=total,
            first=items[0].ordinal_index,
            last=items[-1].ordinal_index,
            is_start=True,
            is_end=total <= count,
            filter={},
        )

    def list(
        self,
        record_type: str,
        filter: Optional[Filter] = None,
        cursor: Optional[str] = None,
        count: int = 25,
    ) -> ListResult:
        """
        Load one page of `record_type` records.

        Parameters
        ----------
        record_type : str
            Registry name of the record type.
        filter : Mapping | None
            Scope of the listing; field -> value, or field -> list of values.
        cursor : str | None
            Token from a previous page's `first_cursor` / `last_cursor`.
        count : int
            Signed page size; positive scans towards older records.

        Raises
        ------
        UnknownRecordType, InvalidPageSize, InvalidCursor, InvalidFilter, RecordNotFound
        """
        spec = get_spec(record_type)
        self._check_count(count)
        filter = filter or {}
        decoded = CursorCodec.decode(cursor, spec) if cursor is not None else None

        if decoded is None and count > 0 and not filter:
            quick = self._from_ring(spec, count)
            if quick is not None:
                return quick

        marks = self.resolver.resolve(spec, filter, decoded, count)
        if marks.empty:
            log.debug("empty %s list created", spec.name)
            return ListResult(
                record_type=spec.name, is_start=True, is_end=True, filter=dict(filter)
            )

        log.debug(
            "%s list initialized with ordinal index %d", spec.name, marks.first,
            extra={"record_type": spec.name},
        )
        return self.loader.load(spec, filter, decoded, count, marks)


__all__ = [
    "ListLoader",
    "ListingEngine",
    "RangeMarks",
    "RangeResolver",
    "ordinal_bound",
]
