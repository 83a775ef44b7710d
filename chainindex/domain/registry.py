"""
Registry of listable record types.

A `RecordSpec` is everything the listing engine, the cursor codec and the
storage backends need to know about a record type: its model, its table, its
primary key and the fields a listing can be scoped by.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from chainindex.domain.models import (
    Contract,
    Delegation,
    Epoch,
    IndexedRecord,
    RewardClaim,
    SwapState,
    TokenTransfer,
    Transaction,
    WithdrawRequest,
)
from chainindex.errors import InvalidFilter, UnknownRecordType

Filter = Mapping[str, Any]


@dataclass(frozen=True)
class RecordSpec:
    name: str
    model: Type[IndexedRecord]
    table: str

    @property
    def key_fields(self) -> Dict[str, type]:
        return self.model.key_fields

    @property
    def scope_fields(self) -> Dict[str, type]:
        return self.model.scope_fields

    def key_to_str(self, key: Tuple[Any, ...]) -> str:
        """Render a primary key as the single text column used by the stores."""
        return "/".join(str(part) for part in key)

    def load(self, payload: Mapping[str, Any]) -> IndexedRecord:
        return self.model.model_validate(payload)

    def dump(self, record: IndexedRecord) -> Dict[str, Any]:
        return record.model_dump(mode="json")


RECORD_SPECS: Dict[str, RecordSpec] = {
    spec.name: spec
    for spec in (
        RecordSpec("transaction", Transaction, "transactions"),
        RecordSpec("delegation", Delegation, "delegations"),
        RecordSpec("reward_claim", RewardClaim, "reward_claims"),
        RecordSpec("withdrawal", WithdrawRequest, "withdrawals"),
        RecordSpec("epoch", Epoch, "epochs"),
        RecordSpec("contract", Contract, "contracts"),
        RecordSpec("token_transfer", TokenTransfer, "token_transfers"),
        RecordSpec("swap", SwapState, "swaps"),
    )
}


def get_spec(record_type: str) -> RecordSpec:
    try:
        return RECORD_SPECS[record_type]
    except KeyError:
        raise UnknownRecordType(record_type) from None


def spec_for(record: IndexedRecord) -> RecordSpec:
    return get_spec(record.record_type)


def available_record_types() -> list[str]:
    """List registered record type names."""
    return sorted(RECORD_SPECS)


def _coerce(spec: RecordSpec, field: str, value: Any) -> Any:
    kind = spec.scope_fields[field]
    if isinstance(value, str) and kind is str and value[:2] in ("0x", "0X"):
        return value.lower()
    if kind is bool and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "y", "on"):
            return True
        if lowered in ("0", "false", "no", "n", "off"):
            return False
        raise InvalidFilter(f"'{field}' expects a boolean, got {value!r}")
    if kind is int and not isinstance(value, bool):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise InvalidFilter(f"'{field}' expects an integer, got {value!r}") from None
    return value


def normalize_filter(spec: RecordSpec, filter: Optional[Filter]) -> Dict[str, Any]:
    """
    Validate a filter against the scope fields of a record type.

    Values are coerced to the field type; hex strings are lower-cased to match
    the stored form. List, tuple and set values mean membership.
    """
    if not filter:
        return {}
    normalized: Dict[str, Any] = {}
    for field, value in filter.items():
        if field not in spec.scope_fields:
            raise InvalidFilter(
                f"{spec.name} can not be filtered by '{field}'; "
                f"allowed: {', '.join(sorted(spec.scope_fields)) or 'none'}"
            )
        if isinstance(value, (list, tuple, set, frozenset)):
            normalized[field] = tuple(_coerce(spec, field, v) for v in value)
        else:
            normalized[field] = _coerce(spec, field, value)
    return normalized


def matches(record: IndexedRecord, filter: Mapping[str, Any]) -> bool:
    """Evaluate a normalized filter against a record."""
    values = record.scope_values()
    for field, expected in filter.items():
        actual = values[field]
        if isinstance(expected, tuple):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


__all__ = [
    "Filter",
    "RECORD_SPECS",
    "RecordSpec",
    "available_record_types",
    "get_spec",
    "matches",
    "normalize_filter",
    "spec_for",
]
