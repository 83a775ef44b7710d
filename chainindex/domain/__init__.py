"""
Domain package for the chain index.

Record models, the ordinal index rule and the registry of listable record
types.
"""

from chainindex.domain.models import (
    BurnLedgerEntry,
    Contract,
    Delegation,
    Epoch,
    IndexedRecord,
    Reserves,
    RewardClaim,
    SwapState,
    SwapType,
    TokenTransfer,
    Transaction,
    WithdrawRequest,
)
from chainindex.domain.ordinal import OrdinalUnavailable, ordinal_index, split_ordinal
from chainindex.domain.registry import RECORD_SPECS, RecordSpec, available_record_types, get_spec

__all__ = [
    "BurnLedgerEntry",
    "Contract",
    "Delegation",
    "Epoch",
    "IndexedRecord",
    "OrdinalUnavailable",
    "RECORD_SPECS",
    "RecordSpec",
    "Reserves",
    "RewardClaim",
    "SwapState",
    "SwapType",
    "TokenTransfer",
    "Transaction",
    "WithdrawRequest",
    "available_record_types",
    "get_spec",
    "ordinal_index",
    "split_ordinal",
]
