"""
Ordinal index assignment.

The ordinal index is the pagination sort key of every record type. It packs the
natural blockchain position of a record into one integer so that comparing two
ordinals compares (block, in-block transaction index, in-transaction log index)
lexicographically:

    ordinal = block << 32 | tx_index << 16 | log_index

The result stays below 2**63 and fits a signed BIGINT column.
"""

from __future__ import annotations

from typing import Optional

BLOCK_SHIFT = 32
TX_INDEX_SHIFT = 16
MAX_BLOCK = 2**31 - 1
MAX_POSITION = 2**16 - 1


class OrdinalUnavailable(ValueError):
    """The record has no final blockchain position yet (pending)."""


def ordinal_index(
    block: Optional[int],
    tx_index: Optional[int] = 0,
    log_index: Optional[int] = 0,
) -> int:
    """
    Derive the ordinal index from a blockchain position.

    Parameters
    ----------
    block : int | None
        Block height. None for pending records.
    tx_index : int | None
        Index of the transaction inside the block.
    log_index : int | None
        Index of the log entry inside the transaction.

    Returns
    -------
    int
        The packed ordinal index.

    Raises
    ------
    OrdinalUnavailable
        If the block or the transaction index is unknown.
    ValueError
        If a component is negative or outside its packing range.
    """
    if block is None or tx_index is None:
        raise OrdinalUnavailable("record has no final block position")
    log_index = log_index or 0

    if not 0 <= block <= MAX_BLOCK:
        raise ValueError(f"block {block} outside ordinal range")
    if not 0 <= tx_index <= MAX_POSITION:
        raise ValueError(f"transaction index {tx_index} outside ordinal range")
    if not 0 <= log_index <= MAX_POSITION:
        raise ValueError(f"log index {log_index} outside ordinal range")

    return (block << BLOCK_SHIFT) | (tx_index << TX_INDEX_SHIFT) | log_index


def split_ordinal(value: int) -> tuple[int, int, int]:
    """Unpack an ordinal index into (block, tx_index, log_index)."""
    return (
        value >> BLOCK_SHIFT,
        (value >> TX_INDEX_SHIFT) & MAX_POSITION,
        value & MAX_POSITION,
    )


__all__ = ["OrdinalUnavailable", "ordinal_index", "split_ordinal"]
