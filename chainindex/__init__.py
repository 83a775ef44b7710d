"""
Chain index - ordinal-indexed pagination and ledger reconciliation for
blockchain explorer records.

This package provides the storage-facing core of a block explorer backend:

- Keyset pagination over any record type with opaque, typed cursors
- Idempotent merging of per-block burn events
- Swap / sync event merging keyed by transaction and trading pair
- PostgreSQL and in-memory backends behind one store protocol

The package is designed around a single `Repository` context object built from
environment configuration.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from chainindex.config import Settings, get_settings
from chainindex.errors import (
    ChainIndexError,
    DuplicateOrdinal,
    InvalidCursor,
    InvalidFilter,
    InvalidPageSize,
    PartialBurnUpdateRejected,
    RecordNotFound,
    UnknownRecordType,
)
from chainindex.pagination import ListResult, ListingEngine
from chainindex.reconcile import BurnOutcome, SwapMergeResult, SwapOutcome
from chainindex.repository import Repository, available_backends, build_repository
from chainindex.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Repository
    "Repository",
    "available_backends",
    "build_repository",
    # Pagination
    "ListResult",
    "ListingEngine",
    # Reconciliation
    "BurnOutcome",
    "SwapMergeResult",
    "SwapOutcome",
    # Errors
    "ChainIndexError",
    "DuplicateOrdinal",
    "InvalidCursor",
    "InvalidFilter",
    "InvalidPageSize",
    "PartialBurnUpdateRejected",
    "RecordNotFound",
    "UnknownRecordType",
    # Logging
    "configure_logging",
    "get_logger",
]
