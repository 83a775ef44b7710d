"""
Swap / sync reconciliation.

A pair emits a reserve `Sync` event next to every `Swap` (and mint/burn) in the
same transaction. Both are keyed by the digest of transaction hash and pair
address, so they land on the same stored entry whatever order they arrive in:

- nothing stored yet: insert, unless a trade leg truncates to zero;
- sync arrives for a known entry: refresh the reserves in place;
- swap arrives for a sync-only placeholder: replace the placeholder with the
  swap, carrying the placeholder's reserves over;
- anything else is a redelivery and changes nothing.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from chainindex.domain.models import Reserves, SwapState, SwapType
from chainindex.storage.abstract import LedgerStore
from chainindex.utils.logging import get_logger

log = get_logger(__name__)


class SwapOutcome(str, enum.Enum):
    INSERTED = "inserted"
    DROPPED_ZERO = "dropped_zero"
    RESERVES_UPDATED = "reserves_updated"
    TRANSPLANTED = "transplanted"
    ALREADY_KNOWN = "already_known"


@dataclass(frozen=True)
class SwapMergeResult:
    """
    Attributes
    ----------
    outcome : SwapOutcome
        What happened to the stored state.
    accepted : bool
        True when the incoming event became (part of) a new stored record.
    reserves : Reserves | None
        Reserves carried over from a sync placeholder, for TRANSPLANTED.
    """

    outcome: SwapOutcome
    accepted: bool
    reserves: Optional[Reserves] = None


class SwapReconciler:
    attempts: int = 2

    def __init__(self, ledger: LedgerStore) -> None:
        self._ledger = ledger

    def merge_swap(self, incoming: SwapState) -> SwapMergeResult:
        """
        Merge a swap-related event into the stored swap state of its key.

        The whole decision, including the placeholder transplant, runs inside
        one locked unit of the key; the caller never inserts on its own.
        """
        key = incoming.swap_key

        for _ in range(self.attempts):
            with self._ledger.swap_unit(key) as unit:
                existing = unit.load()

                if existing is None:
                    if incoming.is_zero_swap():
                        log.debug(
                            "swap from block %s dropped, amount is 0 after removing decimals",
                            incoming.block_number,
                            extra={"swap": key},
                        )
                        return SwapMergeResult(SwapOutcome.DROPPED_ZERO, accepted=False)
                    if unit.insert(incoming):
                        log.debug("swap %s added", key, extra={"type": incoming.type.name})
                        return SwapMergeResult(SwapOutcome.INSERTED, accepted=True)
                    continue

                if incoming.type == SwapType.SYNC:
                    log.debug("updating reserves for swap %s", key)
                    unit.update_reserves(incoming.reserves)
                    return SwapMergeResult(SwapOutcome.RESERVES_UPDATED, accepted=False)

                if existing.type == SwapType.SYNC:
                    if incoming.is_zero_swap():
                        log.debug("zero amount swap %s keeps its sync placeholder", key)
                        return SwapMergeResult(SwapOutcome.DROPPED_ZERO, accepted=False)
                    reserves = existing.reserves
                    log.debug(
                        "moving reserves of sync placeholder into swap %s", key,
                        extra={"reserve0": reserves.reserve0, "reserve1": reserves.reserve1},
                    )
                    unit.delete()
                    unit.insert(incoming.with_reserves(reserves))
                    return SwapMergeResult(
                        SwapOutcome.TRANSPLANTED, accepted=True, reserves=reserves
                    )

                log.debug("swap %s is already known", key)
                return SwapMergeResult(SwapOutcome.ALREADY_KNOWN, accepted=False)

        raise RuntimeError(f"swap {key} could not be locked for merge")


__all__ = ["SwapMergeResult", "SwapOutcome", "SwapReconciler"]
