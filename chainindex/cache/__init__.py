"""
Cache package for the chain index.

Optional fast paths in front of the store: a ring of the most recent records
per type and a read-through record cache. Both are in-process and safe to share
between threads.
"""

from chainindex.cache.records import RecordCache
from chainindex.cache.ring import RecentRing

__all__ = [
    "RecentRing",
    "RecordCache",
]
