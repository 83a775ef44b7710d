from __future__ import annotations

import pytest

from chainindex.domain.models import Epoch
from chainindex.domain.ordinal import (
    MAX_BLOCK,
    MAX_POSITION,
    OrdinalUnavailable,
    ordinal_index,
    split_ordinal,
)


def test_ordinal_packs_block_tx_and_log_index() -> None:
    assert ordinal_index(1, 2, 3) == (1 << 32) | (2 << 16) | 3
    assert split_ordinal(ordinal_index(123_456, 7, 9)) == (123_456, 7, 9)


@pytest.mark.parametrize(
    "lower, higher",
    [
        ((10, 5, 0), (11, 0, 0)),
        ((10, 0, 9), (10, 1, 0)),
        ((10, 1, 0), (10, 1, 1)),
        ((0, 0, 0), (0, 0, 1)),
    ],
)
def test_ordinal_order_follows_chain_position(lower, higher) -> None:
    assert ordinal_index(*lower) < ordinal_index(*higher)


def test_ordinal_of_the_largest_position_fits_signed_bigint() -> None:
    assert ordinal_index(MAX_BLOCK, MAX_POSITION, MAX_POSITION) < 2**63


def test_ordinal_unavailable_for_pending_position() -> None:
    with pytest.raises(OrdinalUnavailable):
        ordinal_index(None, 0)
    with pytest.raises(OrdinalUnavailable):
        ordinal_index(10, None)


def test_ordinal_unavailable_is_a_value_error() -> None:
    assert issubclass(OrdinalUnavailable, ValueError)


@pytest.mark.parametrize(
    "position",
    [(-1, 0, 0), (MAX_BLOCK + 1, 0, 0), (1, MAX_POSITION + 1, 0), (1, 0, MAX_POSITION + 1)],
)
def test_ordinal_rejects_out_of_range_components(position) -> None:
    with pytest.raises(ValueError):
        ordinal_index(*position)


def test_pending_transaction_has_no_ordinal(make_tx) -> None:
    tx = make_tx(None)
    assert tx.is_pending
    with pytest.raises(OrdinalUnavailable):
        tx.ordinal_index


def test_epoch_ordinal_is_its_id() -> None:
    assert Epoch(id=42).ordinal_index == 42
