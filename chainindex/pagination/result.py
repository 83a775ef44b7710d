"""
Uniform container returned by every listing operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chainindex.domain.models import IndexedRecord
from chainindex.domain.registry import get_spec
from chainindex.pagination.cursor import cursor_for


@dataclass
class ListResult:
    """
    One page of records.

    Attributes
    ----------
    record_type : str
        Registry name of the listed records.
    collection : list[IndexedRecord]
        The page, newest (highest ordinal) first.
    total : int
        Number of records matching `filter`, independent of the page window.
        May be transiently stale against concurrent ingestion.
    first, last : int
        Ordinal index of the first / last record of the page.
    is_start : bool
        No records exist above the page (towards newer ordinals).
    is_end : bool
        No records exist below the page (towards older ordinals).
    filter : dict
        The filter the page was scoped by, passed through untouched.
    """

    record_type: str
    collection: List[IndexedRecord] = field(default_factory=list)
    total: int = 0
    first: int = 0
    last: int = 0
    is_start: bool = False
    is_end: bool = False
    filter: Dict[str, Any] = field(default_factory=dict)

    def reverse(self) -> None:
        """Reverse the collection in place and swap the range marks."""
        if len(self.collection) < 2:
            return
        self.collection.reverse()
        self.first, self.last = self.last, self.first

    @property
    def first_cursor(self) -> Optional[str]:
        """Cursor of the top record; pass with a negative count to page towards newer records."""
        if not self.collection:
            return None
        return cursor_for(get_spec(self.record_type), self.collection[0].primary_key)

    @property
    def last_cursor(self) -> Optional[str]:
        """Cursor of the bottom record; pass with a positive count to page towards older records."""
        if not self.collection:
            return None
        return cursor_for(get_spec(self.record_type), self.collection[-1].primary_key)

    def __len__(self) -> int:
        return len(self.collection)


__all__ = ["ListResult"]
