from __future__ import annotations

import pytest

from chainindex.config import Settings
from chainindex.domain.models import Epoch, SwapType
from chainindex.domain.ordinal import OrdinalUnavailable, ordinal_index
from chainindex.errors import (
    DuplicateOrdinal,
    PartialBurnUpdateRejected,
    RecordNotFound,
    UnknownRecordType,
)
from chainindex.reconcile.burn import BurnOutcome
from chainindex.reconcile.swap import SwapOutcome
from chainindex.repository import Repository, available_backends, build_repository
from chainindex.storage.memory import InMemoryLedgerStore, InMemoryRecordStore

LEG = 5 * 10**9
SENDER = "0x" + "aa" * 20
PAIR = "0x" + "dd" * 20


@pytest.fixture
def ring_repo() -> Repository:
    records = InMemoryRecordStore()
    return Repository(records, InMemoryLedgerStore(records), recent_ring_size=5)


def swap_event(**fields) -> dict:
    event = {
        "kind": "swap",
        "tx_hash": "0x01",
        "pair": PAIR,
        "sender": SENDER,
        "block_number": 100,
        "trx_index": 0,
        "log_index": 2,
        "type": 0,
        "amount0_in": LEG,
        "amount1_out": LEG,
    }
    event.update(fields)
    return event


def test_available_backends() -> None:
    assert available_backends() == ["memory", "postgres"]


def test_build_repository_uses_configured_backend() -> None:
    settings = Settings(INDEX_BACKEND="memory", MAX_PAGE_SIZE=7)
    with build_repository(settings) as repo:
        assert isinstance(repo.records, InMemoryRecordStore)
        assert repo.engine.max_page_size == 7


def test_build_repository_rejects_unknown_backend() -> None:
    with pytest.raises(ValueError, match="Unknown backend 'mongo'"):
        build_repository(Settings(INDEX_BACKEND="memory"), backend="mongo")


def test_store_and_get(memory_repo, make_tx) -> None:
    tx = make_tx(3)
    assert memory_repo.store(tx) is True
    assert memory_repo.store(tx.model_copy(update={"status": 0})) is False

    assert memory_repo.get("transaction", [tx.hash]).status == 0


def test_get_unknown_key(memory_repo) -> None:
    with pytest.raises(RecordNotFound):
        memory_repo.get("epoch", (1,))


def test_get_serves_refreshed_record_after_store(memory_repo, make_tx) -> None:
    tx = make_tx(3)
    memory_repo.store(tx)
    assert memory_repo.get("transaction", (tx.hash,)).status is None

    memory_repo.store(tx.model_copy(update={"status": 1}))
    assert memory_repo.get("transaction", (tx.hash,)).status == 1


def test_pending_record_is_not_indexed(memory_repo, make_tx) -> None:
    with pytest.raises(OrdinalUnavailable):
        memory_repo.store(make_tx(None))
    assert memory_repo.list("transaction", count=5).total == 0


def test_ordinal_is_fixed_at_first_insert(memory_repo, make_delegation) -> None:
    first = make_delegation(5, amount_staked=10)
    memory_repo.store(first)

    assert memory_repo.store(make_delegation(9, amount_staked=25)) is False

    stored = memory_repo.get("delegation", first.primary_key)
    assert stored.block_number == 9
    assert stored.amount_staked == 25
    assert stored.ordinal_index == ordinal_index(5, 0)
    page = memory_repo.list("delegation", count=5)
    assert page.total == 1
    assert page.first == ordinal_index(5, 0)
    assert page.collection[0].amount_staked == 25


def test_ingest_refreshes_a_moved_record(memory_repo, make_delegation) -> None:
    event = {"kind": "delegation", **make_delegation(5).model_dump(mode="json")}
    assert memory_repo.ingest(event) == "inserted"
    assert memory_repo.ingest(dict(event, block_number=9)) == "updated"


def test_second_record_at_a_taken_ordinal_is_rejected(memory_repo, make_tx) -> None:
    memory_repo.store(make_tx(5, sender=SENDER))
    with pytest.raises(DuplicateOrdinal):
        memory_repo.store(make_tx(5, sender="0x" + "bb" * 20))
    assert memory_repo.list("transaction", count=5).total == 1


def test_refreshed_record_in_the_ring_keeps_its_place(ring_repo, make_tx) -> None:
    for block in range(1, 4):
        ring_repo.store(make_tx(block))
    ring_repo.list("transaction", count=3)

    moved = make_tx(2).model_copy(update={"block_number": 7, "status": 1})
    ring_repo.store(moved)
    page = ring_repo.list("transaction", count=3)

    assert [r.block_number for r in page.collection] == [3, 7, 1]
    assert page.collection[1].ordinal_index == ordinal_index(2, 0)


def test_readers_see_records_of_another_writer(make_tx) -> None:
    records = InMemoryRecordStore()
    ledger = InMemoryLedgerStore(records)
    writer = Repository(records, ledger, recent_ring_size=5)
    reader = Repository(records, ledger, recent_ring_size=5)
    for block in (1, 2, 3):
        writer.store(make_tx(block))
    assert [r.block_number for r in reader.list("transaction", count=2).collection] == [3, 2]

    writer.store(make_tx(9))
    page = reader.list("transaction", count=2)

    assert [r.block_number for r in page.collection] == [9, 3]
    assert page.total == 4


def test_list_through_the_recent_ring(ring_repo, make_tx) -> None:
    for block in range(1, 8):
        ring_repo.store(make_tx(block))

    page = ring_repo.list("transaction", count=3)

    assert [r.block_number for r in page.collection] == [7, 6, 5]
    assert page.total == 7
    older = ring_repo.list("transaction", cursor=page.last_cursor, count=3)
    assert [r.block_number for r in older.collection] == [4, 3, 2]


def test_burn_total_is_invalidated_by_merges(memory_repo, make_burn) -> None:
    assert memory_repo.store_burn(make_burn(1, 5, "0x0a")) is BurnOutcome.INSERTED
    assert memory_repo.burn_total() == 5

    assert memory_repo.store_burn(make_burn(1, 3, "0x0b")) is BurnOutcome.MERGED
    assert memory_repo.burn_total() == 8
    assert memory_repo.burn_count() == 1
    assert memory_repo.burn_list(5)[0].tx_list == ("0x0a", "0x0b")


def test_transplanted_swap_replaces_the_placeholder_in_the_ring(ring_repo) -> None:
    ring_repo.ingest(swap_event(type=3, log_index=1, amount0_in=0, amount1_out=0, reserve0=9))
    assert ring_repo.ingest(swap_event()) == SwapOutcome.TRANSPLANTED.value

    page = ring_repo.list("swap", count=1)
    assert len(ring_repo.recent["swap"]) == 1
    assert page.collection[0].type is SwapType.SWAP
    assert page.collection[0].reserve0 == 9
    assert page.is_end


def test_ingest_routes_events(memory_repo) -> None:
    assert memory_repo.ingest({"kind": "epoch", "id": 1}) == "inserted"
    assert memory_repo.ingest({"kind": "epoch", "id": 1, "duration": 5}) == "updated"
    assert memory_repo.ingest(
        {"kind": "burn", "block_number": 1, "amount": 5, "tx_list": ["0x0a"]}
    ) == BurnOutcome.INSERTED.value
    assert memory_repo.ingest(swap_event()) == SwapOutcome.INSERTED.value

    assert memory_repo.get("epoch", (1,)) == Epoch(id=1, duration=5)
    assert memory_repo.swap_count() == 1
    assert memory_repo.last_known_swap_block() == 100


def test_ingest_skips_pending_transactions(memory_repo) -> None:
    event = {"kind": "transaction", "hash": "0x01", "sender": SENDER}
    assert memory_repo.ingest(event) == "pending"


def test_ingest_unknown_kind(memory_repo) -> None:
    with pytest.raises(UnknownRecordType):
        memory_repo.ingest({"kind": "block"})
    with pytest.raises(UnknownRecordType):
        memory_repo.ingest({})


def test_ingest_partial_burn(memory_repo) -> None:
    memory_repo.ingest({"kind": "burn", "block_number": 1, "amount": 5, "tx_list": ["0x0a"]})
    with pytest.raises(PartialBurnUpdateRejected):
        memory_repo.ingest(
            {"kind": "burn", "block_number": 1, "amount": 5, "tx_list": ["0x0a", "0x0b"]}
        )
