"""
Burn ledger reconciliation.

Burn events arrive per block, possibly several times and possibly split over
several deliveries. An incoming burn is applied only if none of its
transactions has been applied before; a redelivery of already applied
transactions is a no-op, and a mix of both is rejected.
"""

from __future__ import annotations

import enum

from chainindex.domain.models import BurnLedgerEntry
from chainindex.errors import PartialBurnUpdateRejected
from chainindex.storage.abstract import LedgerStore
from chainindex.utils.logging import get_logger

log = get_logger(__name__)


class BurnOutcome(str, enum.Enum):
    INSERTED = "inserted"
    MERGED = "merged"
    ALREADY_APPLIED = "already_applied"


def merged_entry(existing: BurnLedgerEntry, incoming: BurnLedgerEntry) -> BurnLedgerEntry:
    """Sum the amounts and append the incoming transactions."""
    return existing.model_copy(
        update={
            "amount": existing.amount + incoming.amount,
            "tx_list": existing.tx_list + tuple(dict.fromkeys(incoming.tx_list)),
            "timestamp": existing.timestamp or incoming.timestamp,
        }
    )


class BurnReconciler:
    """
    Apply burn events to the ledger.

    Each merge runs as one locked read-modify-write unit on the block's entry.
    An insert that loses a race against a concurrent insert of the same block
    is retried once as a merge.
    """

    attempts: int = 2

    def __init__(self, ledger: LedgerStore) -> None:
        self._ledger = ledger

    def merge_burn(self, incoming: BurnLedgerEntry) -> BurnOutcome:
        """
        Merge `incoming` into the stored entry of its block.

        Returns
        -------
        BurnOutcome
            What happened to the ledger.

        Raises
        ------
        PartialBurnUpdateRejected
            If some, but not all, incoming transactions are already applied.
            The stored entry is left unchanged.
        """
        block = incoming.block_number
        for _ in range(self.attempts):
            with self._ledger.burn_unit(block) as unit:
                existing = unit.load()
                if existing is None:
                    if unit.insert(incoming):
                        log.debug("burn at #%d inserted", block, extra={"amount": incoming.amount})
                        return BurnOutcome.INSERTED
                    continue

                incoming_txs = set(incoming.tx_list)
                overlap = len(incoming_txs.intersection(existing.tx_list))
                if overlap == len(incoming_txs):
                    log.debug("burn at #%d already applied", block)
                    return BurnOutcome.ALREADY_APPLIED
                if overlap > 0:
                    log.critical(
                        "invalid partial burn received at #%d", block,
                        extra={"overlap": overlap, "incoming": len(incoming_txs)},
                    )
                    raise PartialBurnUpdateRejected(block, overlap, len(incoming_txs))

                unit.update(merged_entry(existing, incoming))
                log.debug("burn at #%d merged", block, extra={"amount": incoming.amount})
                return BurnOutcome.MERGED

        # only reachable when the store reports a lost insert race twice in a row
        raise RuntimeError(f"burn at #{block} could not be locked for merge")


__all__ = ["BurnOutcome", "BurnReconciler", "merged_entry"]
