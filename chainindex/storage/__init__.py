"""
Storage package for the chain index.

Centralizes persistence concerns: the store protocols the engine and the
reconcilers depend on, the PostgreSQL backend with its connection factory and
schema, and the in-memory backend. Keep this layer free of pagination and merge
logic.
"""

from chainindex.storage.abstract import (
    AbstractRecordStore,
    BoundOp,
    LedgerStore,
    OrdinalBound,
    RecordStore,
)
from chainindex.storage.db_factory import get_sync_connection, get_sync_pool
from chainindex.storage.memory import InMemoryLedgerStore, InMemoryRecordStore
from chainindex.storage.postgres import PostgresLedgerStore, PostgresRecordStore
from chainindex.storage.schema import init_schema

__all__ = [
    "AbstractRecordStore",
    "BoundOp",
    "InMemoryLedgerStore",
    "InMemoryRecordStore",
    "LedgerStore",
    "OrdinalBound",
    "PostgresLedgerStore",
    "PostgresRecordStore",
    "RecordStore",
    "get_sync_connection",
    "get_sync_pool",
    "init_schema",
]
