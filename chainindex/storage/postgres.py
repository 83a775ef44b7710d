"""
PostgreSQL storage backend (psycopg 3 + psycopg_pool).

Every statement is composed with `psycopg.sql` from the record type's table and
scope columns; values always travel as parameters. Reads take a pooled
connection each. Ledger merges hold one connection for the whole unit and run
inside a transaction that row-locks the entry with ``SELECT ... FOR UPDATE``.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from enum import IntEnum
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple

import psycopg
from psycopg import Connection, sql
from psycopg.errors import UniqueViolation
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from chainindex.domain.models import BurnLedgerEntry, IndexedRecord, Reserves, SwapState
from chainindex.domain.registry import RecordSpec, get_spec, normalize_filter, spec_for
from chainindex.errors import DuplicateOrdinal
from chainindex.storage.abstract import AbstractRecordStore, OrdinalBound
from chainindex.storage.schema import BURNS_TABLE, STATE_TABLE
from chainindex.utils.logging import get_logger

log = get_logger(__name__)

LAST_SWAP_BLOCK = "last_swap_block"


def _column_value(value: Any) -> Any:
    if isinstance(value, IntEnum):
        return int(value)
    return value


def _where(
    spec: RecordSpec, filter: Mapping[str, Any], extra: Sequence[sql.Composable] = ()
) -> Tuple[sql.Composable, List[Any]]:
    """WHERE clause and parameters of a filter plus optional leading conditions."""
    conditions: List[sql.Composable] = list(extra)
    params: List[Any] = []
    for field, value in normalize_filter(spec, filter).items():
        column = sql.Identifier(field)
        if isinstance(value, tuple):
            conditions.append(sql.SQL("{} = ANY(%s)").format(column))
            params.append([_column_value(v) for v in value])
        elif value is None:
            conditions.append(sql.SQL("{} IS NULL").format(column))
        else:
            conditions.append(sql.SQL("{} = %s").format(column))
            params.append(_column_value(value))
    if not conditions:
        return sql.SQL(""), params
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions), params


def _row_columns(spec: RecordSpec) -> List[sql.Identifier]:
    names = ["pk", "ordinal_index", *spec.scope_fields, "payload"]
    return [sql.Identifier(name) for name in names]


def _row_params(spec: RecordSpec, record: IndexedRecord) -> List[Any]:
    scope = record.scope_values()
    return [
        spec.key_to_str(record.primary_key),
        record.ordinal_index,
        *(_column_value(scope[field]) for field in spec.scope_fields),
        Jsonb(spec.dump(record)),
    ]


def _load_row(spec: RecordSpec, row: Tuple[Any, ...]) -> IndexedRecord:
    payload, ordinal = row
    return spec.load(payload).with_ordinal(int(ordinal))


def _insert_sql(spec: RecordSpec, conflict: sql.Composable) -> sql.Composed:
    columns = _row_columns(spec)
    return sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values}) {conflict}").format(
        table=sql.Identifier(spec.table),
        columns=sql.SQL(", ").join(columns),
        values=sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        conflict=conflict,
    )


class PostgresRecordStore(AbstractRecordStore):
    """
    Record store over one table per record type.

    Parameters
    ----------
    pool : ConnectionPool
        Pool the store borrows connections from; closed by `close()`.
    """

    name: str = "postgres"

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    def _fetch(self, query: sql.Composable, params: Sequence[Any]) -> List[Tuple[Any, ...]]:
        try:
            with self.pool.connection() as conn:
                return conn.execute(query, params).fetchall()
        except psycopg.Error as exc:
            log.error("query failed: %s", exc)
            raise

    def count_by_filter(self, spec: RecordSpec, filter: Mapping[str, Any]) -> int:
        where, params = _where(spec, filter)
        query = sql.SQL("SELECT count(*) FROM {}").format(sql.Identifier(spec.table)) + where
        return int(self._fetch(query, params)[0][0])

    def border_ordinal(
        self, spec: RecordSpec, filter: Mapping[str, Any], highest: bool
    ) -> Optional[int]:
        where, params = _where(spec, filter)
        query = sql.SQL("SELECT {}(ordinal_index) FROM {}").format(
            sql.SQL("max" if highest else "min"), sql.Identifier(spec.table)
        ) + where
        value = self._fetch(query, params)[0][0]
        return int(value) if value is not None else None

    def lookup_ordinal(
        self, spec: RecordSpec, key: Tuple[Any, ...], filter: Mapping[str, Any]
    ) -> Optional[int]:
        where, params = _where(spec, filter, [sql.SQL("pk = %s")])
        query = sql.SQL("SELECT ordinal_index FROM {}").format(sql.Identifier(spec.table)) + where
        rows = self._fetch(query, [spec.key_to_str(key), *params])
        return int(rows[0][0]) if rows else None

    def lookup_by_key(self, spec: RecordSpec, key: Tuple[Any, ...]) -> Optional[IndexedRecord]:
        query = sql.SQL("SELECT payload, ordinal_index FROM {} WHERE pk = %s").format(
            sql.Identifier(spec.table)
        )
        rows = self._fetch(query, [spec.key_to_str(key)])
        return _load_row(spec, rows[0]) if rows else None

    def scan_by_ordinal(
        self,
        spec: RecordSpec,
        filter: Mapping[str, Any],
        bound: OrdinalBound,
        descending: bool,
        limit: int,
    ) -> List[IndexedRecord]:
        range_condition = sql.SQL("ordinal_index {} %s").format(sql.SQL(bound.op.value))
        where, params = _where(spec, filter, [range_condition])
        query = (
            sql.SQL("SELECT payload, ordinal_index FROM {}").format(sql.Identifier(spec.table))
            + where
            + sql.SQL(" ORDER BY ordinal_index {} LIMIT %s").format(
                sql.SQL("DESC" if descending else "ASC")
            )
        )
        rows = self._fetch(query, [bound.value, *params, limit])
        return [_load_row(spec, row) for row in rows]

    def upsert(self, record: IndexedRecord) -> bool:
        """
        Insert a record, or refresh the payload and scope columns of the stored
        one. The ordinal column is written by the insert only.

        Raises
        ------
        DuplicateOrdinal
            If another record of the type already holds the ordinal.
        """
        spec = spec_for(record)
        refresh = [
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(name))
            for name in [*spec.scope_fields, "payload"]
        ]
        query = _insert_sql(
            spec,
            sql.SQL("ON CONFLICT (pk) DO UPDATE SET {} RETURNING (xmax = 0) AS inserted").format(
                sql.SQL(", ").join(refresh)
            ),
        )
        try:
            with self.pool.connection() as conn:
                (inserted,) = conn.execute(query, _row_params(spec, record)).fetchone()
        except UniqueViolation as exc:
            # pk conflicts are absorbed above, so this is the ordinal constraint
            raise DuplicateOrdinal(spec.name, record.ordinal_index) from exc
        except psycopg.Error as exc:
            log.error("upsert of %s failed: %s", spec.name, exc)
            raise
        return bool(inserted)

    def close(self) -> None:
        self.pool.close()


class _PostgresBurnUnit:
    def __init__(self, conn: Connection, block_number: int) -> None:
        self._conn = conn
        self._block = block_number
        self._table = sql.Identifier(BURNS_TABLE)

    def load(self) -> Optional[BurnLedgerEntry]:
        row = self._conn.execute(
            sql.SQL("SELECT block, ts, amount, tx_list FROM {} WHERE block = %s FOR UPDATE").format(
                self._table
            ),
            [self._block],
        ).fetchone()
        return _burn_from_row(row) if row is not None else None

    def insert(self, entry: BurnLedgerEntry) -> bool:
        row = self._conn.execute(
            sql.SQL(
                "INSERT INTO {} (block, ts, amount, tx_list) VALUES (%s, %s, %s, %s) "
                "ON CONFLICT (block) DO NOTHING RETURNING block"
            ).format(self._table),
            [self._block, entry.timestamp, Decimal(entry.amount), list(entry.tx_list)],
        ).fetchone()
        return row is not None

    def update(self, entry: BurnLedgerEntry) -> None:
        self._conn.execute(
            sql.SQL("UPDATE {} SET ts = %s, amount = %s, tx_list = %s WHERE block = %s").format(
                self._table
            ),
            [entry.timestamp, Decimal(entry.amount), list(entry.tx_list), self._block],
        )


def _burn_from_row(row: Tuple[Any, ...]) -> BurnLedgerEntry:
    block, ts, amount, tx_list = row
    return BurnLedgerEntry(
        block_number=block, timestamp=ts, amount=int(amount), tx_list=tuple(tx_list or ())
    )


class _PostgresSwapUnit:
    def __init__(self, conn: Connection, key: str) -> None:
        self._conn = conn
        self._spec = get_spec("swap")
        self._key = key
        self._table = sql.Identifier(self._spec.table)

    def load(self) -> Optional[SwapState]:
        row = self._conn.execute(
            sql.SQL(
                "SELECT payload, ordinal_index FROM {} WHERE pk = %s FOR UPDATE"
            ).format(self._table),
            [self._key],
        ).fetchone()
        return _load_row(self._spec, row) if row is not None else None  # type: ignore[return-value]

    def insert(self, swap: SwapState) -> bool:
        query = _insert_sql(self._spec, sql.SQL("ON CONFLICT (pk) DO NOTHING RETURNING pk"))
        try:
            row = self._conn.execute(query, _row_params(self._spec, swap)).fetchone()
        except UniqueViolation as exc:
            raise DuplicateOrdinal(self._spec.name, swap.ordinal_index) from exc
        return row is not None

    def update_reserves(self, reserves: Reserves) -> None:
        current = self.load()
        if current is None:
            return
        self._conn.execute(
            sql.SQL("UPDATE {} SET payload = %s WHERE pk = %s").format(self._table),
            [Jsonb(self._spec.dump(current.with_reserves(reserves))), self._key],
        )

    def delete(self) -> None:
        self._conn.execute(
            sql.SQL("DELETE FROM {} WHERE pk = %s").format(self._table), [self._key]
        )


class PostgresLedgerStore:
    """Burn ledger, swap state merges and ingestion progress over PostgreSQL."""

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    @contextmanager
    def _unit_connection(self) -> Iterator[Connection]:
        with self.pool.connection() as conn:
            with conn.transaction():
                yield conn

    @contextmanager
    def burn_unit(self, block_number: int) -> Iterator[_PostgresBurnUnit]:
        with self._unit_connection() as conn:
            yield _PostgresBurnUnit(conn, block_number)

    @contextmanager
    def swap_unit(self, key: str) -> Iterator[_PostgresSwapUnit]:
        with self._unit_connection() as conn:
            yield _PostgresSwapUnit(conn, key)

    def _scalar(self, query: sql.Composable, params: Sequence[Any] = ()) -> Any:
        try:
            with self.pool.connection() as conn:
                row = conn.execute(query, params).fetchone()
        except psycopg.Error as exc:
            log.error("ledger query failed: %s", exc)
            raise
        return row[0] if row is not None else None

    def burn_total(self) -> int:
        value = self._scalar(
            sql.SQL("SELECT coalesce(sum(amount), 0) FROM {}").format(sql.Identifier(BURNS_TABLE))
        )
        return int(value)

    def burn_list(self, count: int) -> List[BurnLedgerEntry]:
        if count <= 0:
            return []
        query = sql.SQL(
            "SELECT block, ts, amount, tx_list FROM {} ORDER BY block DESC LIMIT %s"
        ).format(sql.Identifier(BURNS_TABLE))
        with self.pool.connection() as conn:
            rows = conn.execute(query, [count]).fetchall()
        return [_burn_from_row(row) for row in rows]

    def burn_count(self) -> int:
        return int(
            self._scalar(sql.SQL("SELECT count(*) FROM {}").format(sql.Identifier(BURNS_TABLE)))
        )

    def swap_count(self) -> int:
        table = sql.Identifier(get_spec("swap").table)
        return int(self._scalar(sql.SQL("SELECT count(*) FROM {}").format(table)))

    def last_known_swap_block(self) -> int:
        value = self._scalar(
            sql.SQL("SELECT value FROM {} WHERE key = %s").format(sql.Identifier(STATE_TABLE)),
            [LAST_SWAP_BLOCK],
        )
        return int(value) if value is not None else 0

    def update_last_known_swap_block(self, block_number: int) -> int:
        query = sql.SQL(
            "INSERT INTO {table} (key, value) VALUES (%s, %s) "
            "ON CONFLICT (key) DO UPDATE SET value = GREATEST({table}.value, EXCLUDED.value) "
            "RETURNING value"
        ).format(table=sql.Identifier(STATE_TABLE))
        return int(self._scalar(query, [LAST_SWAP_BLOCK, block_number]))


__all__ = ["PostgresLedgerStore", "PostgresRecordStore"]
