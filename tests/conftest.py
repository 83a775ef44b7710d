"""
Pytest configuration for the chain index.

Provides fixtures for:
- Record factories with deterministic hashes and addresses
- Repositories over the in-memory backend
- Database connection management and schema setup for integration tests
"""

from __future__ import annotations

import hashlib
import os
from typing import Callable, Generator, Optional

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from chainindex.config import Settings, get_settings
from chainindex.domain.models import (
    BurnLedgerEntry,
    Contract,
    Delegation,
    SwapState,
    SwapType,
    Transaction,
)
from chainindex.repository import Repository
from chainindex.storage.memory import InMemoryLedgerStore, InMemoryRecordStore
from chainindex.storage.postgres import PostgresLedgerStore, PostgresRecordStore
from chainindex.storage.schema import init_schema, truncate_all

SENDER_A = "0x" + "aa" * 20
SENDER_B = "0x" + "bb" * 20
RECIPIENT = "0x" + "cc" * 20
PAIR = "0x" + "dd" * 20


def fake_hash(*parts: object) -> str:
    """Deterministic 32 byte hex hash of the given parts."""
    return "0x" + hashlib.sha256(repr(parts).encode("utf-8")).hexdigest()


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    def factory(
        block: Optional[int],
        trx_index: int = 0,
        sender: str = SENDER_A,
        recipient: str = RECIPIENT,
        **fields,
    ) -> Transaction:
        return Transaction(
            hash=fake_hash("tx", block, trx_index, sender),
            block_number=block,
            trx_index=trx_index if block is not None else None,
            sender=sender,
            recipient=recipient,
            **fields,
        )

    return factory


@pytest.fixture
def make_contract() -> Callable[..., Contract]:
    def factory(block: int = 5, trx_index: int = 0, log_index: int = 0, **fields) -> Contract:
        return Contract(
            address="0x" + fake_hash("contract", block, trx_index, log_index)[-40:],
            trx_hash=fake_hash("tx", block, trx_index),
            block_number=block,
            trx_index=trx_index,
            log_index=log_index,
            **fields,
        )

    return factory


@pytest.fixture
def make_swap() -> Callable[..., SwapState]:
    def factory(
        tx: str = "0x01",
        pair: str = PAIR,
        type: SwapType = SwapType.SWAP,
        block: int = 100,
        log_index: int = 2,
        **amounts: int,
    ) -> SwapState:
        return SwapState(
            tx_hash=tx,
            pair=pair,
            sender=SENDER_A,
            type=type,
            block_number=block,
            trx_index=0,
            log_index=log_index,
            **amounts,
        )

    return factory


@pytest.fixture
def make_delegation() -> Callable[..., Delegation]:
    def factory(block: int, trx_index: int = 0, validator_id: int = 1, **fields) -> Delegation:
        return Delegation(
            address=SENDER_A,
            validator_id=validator_id,
            trx_hash=fake_hash("delegation", block, trx_index),
            block_number=block,
            trx_index=trx_index,
            **fields,
        )

    return factory


@pytest.fixture
def make_burn() -> Callable[..., BurnLedgerEntry]:
    def factory(block: int, amount: int, *txs: str) -> BurnLedgerEntry:
        return BurnLedgerEntry(block_number=block, amount=amount, tx_list=txs)

    return factory


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def memory_ledger(memory_store: InMemoryRecordStore) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(memory_store)


@pytest.fixture
def memory_repo(
    memory_store: InMemoryRecordStore, memory_ledger: InMemoryLedgerStore
) -> Repository:
    """Repository over the memory backend with the recent ring disabled."""
    return Repository(memory_store, memory_ledger, max_page_size=100, recent_ring_size=0)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "chain_index"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection with the schema initialized.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        init_schema(conn)
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_pool(
    test_dsn: str, db_connection: psycopg.Connection
) -> Generator[ConnectionPool, None, None]:
    pool = ConnectionPool(conninfo=test_dsn, min_size=1, max_size=4, open=True)
    try:
        yield pool
    finally:
        pool.close()


@pytest.fixture
def clean_tables(db_connection: psycopg.Connection) -> Generator[None, None, None]:
    """
    Empty every index table before and after each test function.
    """
    truncate_all(db_connection)
    yield
    truncate_all(db_connection)


@pytest.fixture
def pg_repo(db_pool: ConnectionPool, clean_tables: None) -> Repository:
    return Repository(
        PostgresRecordStore(db_pool),
        PostgresLedgerStore(db_pool),
        max_page_size=100,
        recent_ring_size=0,
    )
