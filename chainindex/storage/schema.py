"""
PostgreSQL schema of the chain index.

One table per record type (primary key rendered as text, the ordinal index,
one column per scope field and the full record as JSONB), the burn ledger and
a small key/value table for ingestion progress.
"""

from __future__ import annotations

from typing import Iterator, List

from psycopg import Connection, sql

from chainindex.domain.registry import RECORD_SPECS, RecordSpec
from chainindex.utils.logging import get_logger

log = get_logger(__name__)

BURNS_TABLE = "burns"
STATE_TABLE = "index_state"

_COLUMN_TYPES = {int: "BIGINT", str: "TEXT", bool: "BOOLEAN"}


def column_type(kind: type) -> str:
    return _COLUMN_TYPES[kind]


def record_table_ddl(spec: RecordSpec) -> List[sql.Composable]:
    """CREATE TABLE / INDEX statements of one record type."""
    table = sql.Identifier(spec.table)
    columns = [
        sql.SQL("pk TEXT PRIMARY KEY"),
        sql.SQL("ordinal_index BIGINT NOT NULL UNIQUE"),
    ]
    for field, kind in spec.scope_fields.items():
        columns.append(sql.SQL("{} {}").format(sql.Identifier(field), sql.SQL(column_type(kind))))
    columns.append(sql.SQL("payload JSONB NOT NULL"))

    statements: List[sql.Composable] = [
        sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(table, sql.SQL(", ").join(columns))
    ]
    for field in spec.scope_fields:
        # scoped scans walk the ordinal index inside one scope value
        statements.append(
            sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} ({}, ordinal_index)").format(
                sql.Identifier(f"ix_{spec.table}_{field}_ordinal"),
                table,
                sql.Identifier(field),
            )
        )
    return statements


def ledger_ddl() -> List[sql.Composable]:
    return [
        sql.SQL(
            "CREATE TABLE IF NOT EXISTS {} ("
            "block BIGINT PRIMARY KEY, "
            "ts TIMESTAMPTZ, "
            "amount NUMERIC(78, 0) NOT NULL DEFAULT 0, "
            "tx_list TEXT[] NOT NULL DEFAULT '{{}}')"
        ).format(sql.Identifier(BURNS_TABLE)),
        sql.SQL(
            "CREATE TABLE IF NOT EXISTS {} (key TEXT PRIMARY KEY, value BIGINT NOT NULL)"
        ).format(sql.Identifier(STATE_TABLE)),
    ]


def schema_statements() -> Iterator[sql.Composable]:
    for spec in RECORD_SPECS.values():
        yield from record_table_ddl(spec)
    yield from ledger_ddl()


def all_tables() -> List[str]:
    return [spec.table for spec in RECORD_SPECS.values()] + [BURNS_TABLE, STATE_TABLE]


def init_schema(conn: Connection) -> int:
    """
    Create every table and index that does not exist yet.

    Returns
    -------
    int
        Number of statements executed.
    """
    executed = 0
    with conn.transaction():
        with conn.cursor() as cur:
            for statement in schema_statements():
                cur.execute(statement)
                executed += 1
    log.info("schema initialized", extra={"statements": executed})
    return executed


def truncate_all(conn: Connection) -> None:
    """Empty every index table. Used by the integration tests."""
    tables = sql.SQL(", ").join(sql.Identifier(name) for name in all_tables())
    with conn.transaction():
        conn.execute(sql.SQL("TRUNCATE TABLE {}").format(tables))


__all__ = [
    "BURNS_TABLE",
    "STATE_TABLE",
    "all_tables",
    "column_type",
    "init_schema",
    "ledger_ddl",
    "record_table_ddl",
    "schema_statements",
    "truncate_all",
]
