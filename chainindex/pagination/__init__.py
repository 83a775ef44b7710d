"""
Pagination package for the chain index.

Cursor tokens, the listing engine and the page container.
"""

from chainindex.pagination.cursor import Cursor, CursorCodec, cursor_for
from chainindex.pagination.engine import ListingEngine, ListLoader, RangeResolver
from chainindex.pagination.result import ListResult

__all__ = [
    "Cursor",
    "CursorCodec",
    "ListLoader",
    "ListResult",
    "ListingEngine",
    "RangeResolver",
    "cursor_for",
]
