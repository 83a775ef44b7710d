from __future__ import annotations

import logging
import threading
from contextlib import contextmanager

import pytest

from chainindex.errors import PartialBurnUpdateRejected
from chainindex.reconcile.burn import BurnOutcome, BurnReconciler

BLOCK = 10


@pytest.fixture
def reconciler(memory_ledger) -> BurnReconciler:
    return BurnReconciler(memory_ledger)


def test_first_burn_of_a_block_is_inserted(reconciler, memory_ledger, make_burn) -> None:
    assert reconciler.merge_burn(make_burn(BLOCK, 5, "0x0a", "0x0b")) is BurnOutcome.INSERTED

    entry = memory_ledger.burn_list(1)[0]
    assert entry.amount == 5
    assert entry.tx_list == ("0x0a", "0x0b")


def test_disjoint_burns_accumulate(reconciler, memory_ledger, make_burn) -> None:
    reconciler.merge_burn(make_burn(BLOCK, 5, "0x0a", "0x0b"))

    assert reconciler.merge_burn(make_burn(BLOCK, 3, "0x0c")) is BurnOutcome.MERGED

    entry = memory_ledger.burn_list(1)[0]
    assert entry.amount == 8
    assert entry.tx_list == ("0x0a", "0x0b", "0x0c")
    assert memory_ledger.burn_total() == 8


def test_redelivery_is_a_no_op(reconciler, memory_ledger, make_burn) -> None:
    reconciler.merge_burn(make_burn(BLOCK, 5, "0x0a", "0x0b"))
    reconciler.merge_burn(make_burn(BLOCK, 3, "0x0c"))

    assert reconciler.merge_burn(make_burn(BLOCK, 3, "0x0c")) is BurnOutcome.ALREADY_APPLIED
    assert reconciler.merge_burn(make_burn(BLOCK, 5, "0x0b", "0x0a")) is BurnOutcome.ALREADY_APPLIED
    assert memory_ledger.burn_list(1)[0].amount == 8


def test_partial_overlap_is_rejected_and_logged(
    reconciler, memory_ledger, make_burn, caplog
) -> None:
    reconciler.merge_burn(make_burn(BLOCK, 5, "0x0a", "0x0b"))

    with caplog.at_level(logging.CRITICAL, logger="chainindex.reconcile.burn"):
        with pytest.raises(PartialBurnUpdateRejected) as excinfo:
            reconciler.merge_burn(make_burn(BLOCK, 7, "0x0b", "0x0c"))

    assert excinfo.value.block_number == BLOCK
    assert (excinfo.value.overlap, excinfo.value.incoming) == (1, 2)
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    entry = memory_ledger.burn_list(1)[0]
    assert entry.amount == 5
    assert entry.tx_list == ("0x0a", "0x0b")


def test_blocks_are_independent(reconciler, memory_ledger, make_burn) -> None:
    reconciler.merge_burn(make_burn(1, 5, "0x0a"))
    reconciler.merge_burn(make_burn(2, 7, "0x0a"))

    assert [e.block_number for e in memory_ledger.burn_list(10)] == [2, 1]
    assert memory_ledger.burn_count() == 2
    assert memory_ledger.burn_total() == 12


def test_concurrent_disjoint_merges_lose_no_update(reconciler, memory_ledger, make_burn) -> None:
    workers = 16
    barrier = threading.Barrier(workers)

    def merge(i: int) -> None:
        barrier.wait()
        reconciler.merge_burn(make_burn(BLOCK, 1, hex(0x100 + i)))

    threads = [threading.Thread(target=merge, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    entry = memory_ledger.burn_list(1)[0]
    assert entry.amount == workers
    assert len(entry.tx_list) == workers


class _RaceUnit:
    def __init__(self, inner, ledger: "_RacingLedger") -> None:
        self._inner = inner
        self._ledger = ledger

    def load(self):
        return self._inner.load()

    def insert(self, entry) -> bool:
        if not self._ledger.raced:
            # a concurrent writer commits its entry first
            self._ledger.raced = True
            self._inner.insert(self._ledger.winner)
            return False
        return self._inner.insert(entry)

    def update(self, entry) -> None:
        self._inner.update(entry)


class _RacingLedger:
    """Ledger whose first insert loses against a concurrent writer."""

    def __init__(self, ledger, winner) -> None:
        self._ledger = ledger
        self.winner = winner
        self.raced = False

    @contextmanager
    def burn_unit(self, block_number: int):
        with self._ledger.burn_unit(block_number) as inner:
            yield _RaceUnit(inner, self)


def test_lost_insert_race_is_retried_as_merge(memory_ledger, make_burn) -> None:
    racing = _RacingLedger(memory_ledger, make_burn(BLOCK, 5, "0x0a"))

    outcome = BurnReconciler(racing).merge_burn(make_burn(BLOCK, 3, "0x0c"))

    assert outcome is BurnOutcome.MERGED
    assert memory_ledger.burn_list(1)[0].amount == 8
