"""
Domain models for the chain index.

Every listable entity is an `IndexedRecord`: an immutable pydantic model that
knows its record type name, its primary key fields, the fields a listing can be
scoped by, and how to derive its ordinal index from its blockchain position.
The burn ledger entry and the swap state are the two aggregates maintained by
the reconcilers.
"""
from __future__ import annotations

import hashlib
from datetime import datetime
from enum import IntEnum
from typing import Annotated, Any, ClassVar, Dict, Optional, Tuple

from pydantic import AfterValidator, BaseModel, Field

from chainindex.domain.ordinal import ordinal_index

# Amount corrections applied by the swap zero-leg check and by burn value rendering.
SWAP_AMOUNT_DECIMALS_CORRECTION = 10**9
SWAP_RESERVE_DECIMALS_CORRECTION = 10**12
BURN_DECIMALS_CORRECTION = 10**10
BURN_NEC_DECIMALS_CORRECTION = 10**8


def _normalize_hex(value: str) -> str:
    if not value.startswith(("0x", "0X")):
        raise ValueError(f"expected 0x-prefixed hex string, got {value!r}")
    try:
        int(value[2:] or "0", 16)
    except ValueError as exc:
        raise ValueError(f"invalid hex string {value!r}") from exc
    return "0x" + value[2:].lower()


HexStr = Annotated[str, AfterValidator(_normalize_hex)]


class IndexedRecord(BaseModel):
    """
    Base class of every record served by the listing engine.

    Subclasses declare:
    - `record_type`: registry name, also embedded in cursors.
    - `key_fields`: ordered mapping of primary key field -> Python type.
    - `scope_fields`: mapping of filterable field -> Python type.
    """

    record_type: ClassVar[str]
    key_fields: ClassVar[Dict[str, type]]
    scope_fields: ClassVar[Dict[str, type]] = {}

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    pinned_ordinal: Optional[int] = Field(
        None,
        exclude=True,
        repr=False,
        description="Ordinal assigned at first insert, set when the position moved since.",
    )

    @property
    def primary_key(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, name) for name in self.key_fields)

    @property
    def ordinal_index(self) -> int:
        if self.pinned_ordinal is not None:
            return self.pinned_ordinal
        return self.position_ordinal()

    def position_ordinal(self) -> int:  # pragma: no cover - overridden by every record type
        """Ordinal derived from the record's own blockchain position."""
        raise NotImplementedError

    def with_ordinal(self, ordinal: int) -> "IndexedRecord":
        """The record as stored under an ordinal assigned earlier."""
        if ordinal == self.position_ordinal():
            ordinal = None
        if ordinal == self.pinned_ordinal:
            return self
        return self.model_copy(update={"pinned_ordinal": ordinal})

    def scope_values(self) -> Dict[str, Any]:
        """Values of the scope fields, used for filtering."""
        return {name: getattr(self, name) for name in self.scope_fields}


class Transaction(IndexedRecord):
    record_type: ClassVar[str] = "transaction"
    key_fields: ClassVar[Dict[str, type]] = {"hash": str}
    scope_fields: ClassVar[Dict[str, type]] = {
        "sender": str,
        "recipient": str,
        "block_number": int,
    }

    hash: HexStr
    block_number: Optional[int] = Field(None, ge=0, description="None while pending.")
    block_hash: Optional[HexStr] = None
    trx_index: Optional[int] = Field(None, ge=0)
    timestamp: Optional[datetime] = None
    sender: HexStr
    recipient: Optional[HexStr] = Field(None, description="None for contract creation.")
    value: int = Field(0, ge=0)
    gas: int = Field(0, ge=0)
    gas_used: Optional[int] = Field(None, ge=0)
    gas_price: int = Field(0, ge=0)
    nonce: int = Field(0, ge=0)
    input_data: str = "0x"
    contract_address: Optional[HexStr] = None
    status: Optional[int] = Field(None, description="Receipt status; None while pending.")

    @property
    def is_pending(self) -> bool:
        return self.block_number is None

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index)


class Delegation(IndexedRecord):
    record_type: ClassVar[str] = "delegation"
    key_fields: ClassVar[Dict[str, type]] = {"address": str, "validator_id": int}
    scope_fields: ClassVar[Dict[str, type]] = {"address": str, "validator_id": int}

    address: HexStr
    validator_id: int = Field(..., ge=0)
    trx_hash: HexStr
    block_number: Optional[int] = Field(None, ge=0)
    trx_index: Optional[int] = Field(None, ge=0)
    log_index: int = Field(0, ge=0)
    created: Optional[datetime] = None
    amount_staked: int = Field(0, ge=0)
    amount_delegated: int = Field(0, ge=0)

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index, self.log_index)


class RewardClaim(IndexedRecord):
    record_type: ClassVar[str] = "reward_claim"
    key_fields: ClassVar[Dict[str, type]] = {"trx_hash": str}
    scope_fields: ClassVar[Dict[str, type]] = {"address": str, "validator_id": int}

    trx_hash: HexStr
    address: HexStr
    validator_id: int = Field(..., ge=0)
    block_number: Optional[int] = Field(None, ge=0)
    trx_index: Optional[int] = Field(None, ge=0)
    log_index: int = Field(0, ge=0)
    claimed: Optional[datetime] = None
    amount: int = Field(0, ge=0)
    is_restaked: bool = False

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index, self.log_index)


class WithdrawRequest(IndexedRecord):
    record_type: ClassVar[str] = "withdrawal"
    key_fields: ClassVar[Dict[str, type]] = {"address": str, "request_id": int}
    scope_fields: ClassVar[Dict[str, type]] = {
        "address": str,
        "validator_id": int,
        "is_finalized": bool,
    }

    address: HexStr
    request_id: int = Field(..., ge=0)
    validator_id: int = Field(..., ge=0)
    request_trx: HexStr
    block_number: Optional[int] = Field(None, ge=0)
    trx_index: Optional[int] = Field(None, ge=0)
    log_index: int = Field(0, ge=0)
    created: Optional[datetime] = None
    amount: int = Field(0, ge=0)
    withdraw_trx: Optional[HexStr] = None
    withdrawn: Optional[datetime] = None
    penalty: Optional[int] = Field(None, ge=0)

    @property
    def is_finalized(self) -> bool:
        return self.withdraw_trx is not None

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index, self.log_index)


class Epoch(IndexedRecord):
    record_type: ClassVar[str] = "epoch"
    key_fields: ClassVar[Dict[str, type]] = {"id": int}

    id: int = Field(..., ge=0)
    end_time: Optional[datetime] = None
    duration: int = Field(0, ge=0, description="Epoch duration in seconds.")
    epoch_fee: int = Field(0, ge=0)
    total_base_reward_weight: int = Field(0, ge=0)
    total_tx_reward_weight: int = Field(0, ge=0)
    base_reward_per_second: int = Field(0, ge=0)
    stake_total_amount: int = Field(0, ge=0)
    total_supply: int = Field(0, ge=0)

    def position_ordinal(self) -> int:
        # epochs are sealed strictly in id order
        return self.id


class Contract(IndexedRecord):
    record_type: ClassVar[str] = "contract"
    key_fields: ClassVar[Dict[str, type]] = {"address": str}
    scope_fields: ClassVar[Dict[str, type]] = {"contract_type": str}

    address: HexStr
    trx_hash: HexStr
    block_number: Optional[int] = Field(None, ge=0)
    trx_index: Optional[int] = Field(None, ge=0)
    log_index: int = Field(0, ge=0, description="Position among contracts created by one trx.")
    timestamp: Optional[datetime] = None
    contract_type: str = "custom"
    name: str = ""
    version: str = ""
    compiler: str = ""
    source_code: Optional[str] = None
    abi: Optional[str] = None
    validated: Optional[datetime] = None

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index, self.log_index)


class TokenTransfer(IndexedRecord):
    record_type: ClassVar[str] = "token_transfer"
    key_fields: ClassVar[Dict[str, type]] = {"trx_hash": str, "log_index": int}
    scope_fields: ClassVar[Dict[str, type]] = {
        "token": str,
        "sender": str,
        "recipient": str,
        "token_type": str,
    }

    trx_hash: HexStr
    log_index: int = Field(..., ge=0)
    block_number: Optional[int] = Field(None, ge=0)
    trx_index: Optional[int] = Field(None, ge=0)
    timestamp: Optional[datetime] = None
    token: HexStr
    token_type: str = "ERC20"
    token_id: Optional[int] = Field(None, ge=0)
    sender: HexStr
    recipient: HexStr
    amount: int = Field(0, ge=0)
    trx_type: str = "TRANSFER"

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index, self.log_index)


class SwapType(IntEnum):
    SWAP = 0
    MINT = 1
    BURN = 2
    SYNC = 3


class Reserves(BaseModel):
    """Pair reserve snapshot carried by a sync event."""

    reserve0: int = Field(0, ge=0)
    reserve1: int = Field(0, ge=0)

    model_config = {"frozen": True}


def swap_key(tx_hash: str, pair: str) -> str:
    """
    Content-derived identity of a swap: sha256 over the transaction hash (as a
    minimal big-endian integer) followed by the 20 byte pair address.
    """
    tx_value = int(tx_hash, 16)
    tx_bytes = tx_value.to_bytes((tx_value.bit_length() + 7) // 8, "big")
    pair_bytes = int(pair, 16).to_bytes(20, "big")
    return "0x" + hashlib.sha256(tx_bytes + pair_bytes).hexdigest()


class SwapState(IndexedRecord):
    """
    A swap-related event of a trading pair, keyed by `swap_key`.

    A `SYNC` typed entry is a reserve-only placeholder; it is replaced by the
    swap event of the same transaction and pair when that arrives.
    """

    record_type: ClassVar[str] = "swap"
    key_fields: ClassVar[Dict[str, type]] = {"swap_key": str}
    scope_fields: ClassVar[Dict[str, type]] = {"pair": str, "type": int, "sender": str}

    tx_hash: HexStr
    pair: HexStr
    sender: HexStr
    type: SwapType = SwapType.SWAP
    block_number: Optional[int] = Field(None, ge=0)
    trx_index: Optional[int] = Field(None, ge=0)
    log_index: int = Field(0, ge=0)
    timestamp: Optional[datetime] = None
    amount0_in: int = Field(0, ge=0)
    amount0_out: int = Field(0, ge=0)
    amount1_in: int = Field(0, ge=0)
    amount1_out: int = Field(0, ge=0)
    reserve0: int = Field(0, ge=0)
    reserve1: int = Field(0, ge=0)

    @property
    def swap_key(self) -> str:
        return swap_key(self.tx_hash, self.pair)

    def position_ordinal(self) -> int:
        return ordinal_index(self.block_number, self.trx_index, self.log_index)

    @property
    def reserves(self) -> Reserves:
        return Reserves(reserve0=self.reserve0, reserve1=self.reserve1)

    def is_zero_swap(self) -> bool:
        """True when a trade leg truncates to zero; sync events never do."""
        if self.type == SwapType.SYNC:
            return False
        leg0 = (self.amount0_in + self.amount0_out) // SWAP_AMOUNT_DECIMALS_CORRECTION
        leg1 = (self.amount1_in + self.amount1_out) // SWAP_AMOUNT_DECIMALS_CORRECTION
        return leg0 == 0 or leg1 == 0

    def with_reserves(self, reserves: Reserves) -> "SwapState":
        return self.model_copy(
            update={"reserve0": reserves.reserve0, "reserve1": reserves.reserve1}
        )


class BurnLedgerEntry(BaseModel):
    """
    Native token burned in one block, accumulated over the transactions that
    contributed to it.
    """

    block_number: int = Field(..., ge=0)
    timestamp: Optional[datetime] = None
    amount: int = Field(0, ge=0, description="Burned amount in wei.")
    tx_list: Tuple[HexStr, ...] = ()

    model_config = {"frozen": True}

    @property
    def value(self) -> int:
        """Burned amount with reduced precision."""
        return self.amount // BURN_DECIMALS_CORRECTION

    @property
    def nec_value(self) -> float:
        """Burned amount in native token units."""
        return self.value / BURN_NEC_DECIMALS_CORRECTION


__all__ = [
    "BurnLedgerEntry",
    "Contract",
    "Delegation",
    "Epoch",
    "HexStr",
    "IndexedRecord",
    "Reserves",
    "RewardClaim",
    "SwapState",
    "SwapType",
    "TokenTransfer",
    "Transaction",
    "WithdrawRequest",
    "swap_key",
]
