"""
Exception hierarchy for the chain index.

Callers can catch `ChainIndexError` for anything raised by the index itself.
Store-level failures (``psycopg.Error`` and friends) are not wrapped and reach
the caller unchanged.
"""

from __future__ import annotations

from typing import Any, Sequence


class ChainIndexError(Exception):
    """Base class for errors raised by the index."""


class UnknownRecordType(ChainIndexError, KeyError):
    """The requested record type is not registered."""

    def __init__(self, record_type: str) -> None:
        super().__init__(record_type)
        self.record_type = record_type

    def __str__(self) -> str:
        return f"unknown record type '{self.record_type}'"


class InvalidCursor(ChainIndexError, ValueError):
    """A cursor token is malformed or belongs to a different record type."""


class RecordNotFound(ChainIndexError, LookupError):
    """A key (usually a decoded cursor) does not resolve against the current filter."""

    def __init__(self, record_type: str, key: Sequence[Any]) -> None:
        super().__init__(f"{record_type} {tuple(key)!r} not found")
        self.record_type = record_type
        self.key = tuple(key)


class InvalidFilter(ChainIndexError, ValueError):
    """A filter references a field the record type cannot be scoped by."""


class InvalidPageSize(ChainIndexError, ValueError):
    """The signed page size is zero or exceeds the configured maximum."""


class DuplicateOrdinal(ChainIndexError, ValueError):
    """Another record of the same type already holds the ordinal index."""

    def __init__(self, record_type: str, ordinal: int) -> None:
        super().__init__(f"{record_type} ordinal {ordinal} is already taken")
        self.record_type = record_type
        self.ordinal = ordinal


class PartialBurnUpdateRejected(ChainIndexError):
    """
    A burn update overlaps the stored entry only partially.

    The stored entry is left untouched; the ingestion source has to redeliver
    the complete, unsplit event.
    """

    def __init__(self, block_number: int, overlap: int, incoming: int) -> None:
        super().__init__(
            f"partial burn update rejected at #{block_number} "
            f"({overlap} of {incoming} transactions already applied)"
        )
        self.block_number = block_number
        self.overlap = overlap
        self.incoming = incoming


__all__ = [
    "ChainIndexError",
    "DuplicateOrdinal",
    "InvalidCursor",
    "InvalidFilter",
    "InvalidPageSize",
    "PartialBurnUpdateRejected",
    "RecordNotFound",
    "UnknownRecordType",
]
