"""
Reconciliation package for the chain index.

Idempotent insert-or-merge rules applied to every inbound ledger event before
it reaches the index: cumulative per-block burns and per-pair swap/sync state.
"""

from chainindex.reconcile.burn import BurnOutcome, BurnReconciler
from chainindex.reconcile.swap import SwapMergeResult, SwapOutcome, SwapReconciler

__all__ = [
    "BurnOutcome",
    "BurnReconciler",
    "SwapMergeResult",
    "SwapOutcome",
    "SwapReconciler",
]
