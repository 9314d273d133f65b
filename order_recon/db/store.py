from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.pool import PoolError, ThreadedConnectionPool

from ..models.config_models import DatabaseConfig
from ..models.reconciliation_record import FIELD_TO_COLUMN, STORE_COLUMNS, ReconciliationRecord
from .batch_insert import BatchInsertError, batch_insert, insert_row

"""PostgreSQL record store.

The store is an explicitly constructed handle around a psycopg2
ThreadedConnectionPool; it is passed into every engine operation and is never
a module-level singleton. Each public method borrows one connection, runs in
its own transaction, and returns the connection to the pool.

Every method takes an optional ``timeout`` (seconds) that is applied as
``SET LOCAL statement_timeout`` for that call only.
"""

logger = logging.getLogger(__name__)

# Columns returned by scan_all / point_lookup (upper-case keys, as reported)
SCAN_COLUMNS: tuple[str, ...] = ("ORDERNUMBER", "MATERIAL_NUMBER", "BATCHNUMBER", "STATUS")


class StoreError(Exception):
    """Store call failed for a reason other than connectivity."""


class StoreUnavailable(StoreError):
    """Connectivity or timeout failure talking to the store. Never retried here."""


class StoreWriteError(StoreError):
    """A write (insert/update/delete) was rejected by the database."""


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string resolution order:

    1. DATABASE_URL / PGDSN environment variables (whole DSN)
    2. database.dsn from config
    3. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE,
       falling back to the database section, then libpq defaults
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _timeout_ms(timeout: float | None) -> int | None:
    if timeout is None:
        return None
    return max(1, int(timeout * 1000))


def _rows_as_dicts(cursor: Any) -> list[dict[str, Any]]:
    names = [d[0].upper() for d in cursor.description]
    return [dict(zip(names, row, strict=False)) for row in cursor.fetchall()]


class ReconciliationStore:
    """Query/execute capability over the reconciliation table."""

    def __init__(
        self,
        pool: Any,
        table: str = "reconciliation",
        default_timeout: float | None = None,
    ) -> None:
        self._pool = pool
        self.table = table
        self.default_timeout = default_timeout

    @classmethod
    def from_config(
        cls, db_cfg: DatabaseConfig, default_timeout: float | None = None
    ) -> ReconciliationStore:
        """Create the connection pool (fixed bounds from config) and wrap it."""
        dsn = resolve_dsn(db_cfg)
        try:
            pool = ThreadedConnectionPool(db_cfg.pool_min, db_cfg.pool_max, dsn)
        except psycopg2.Error as e:
            raise StoreUnavailable(f"cannot open connection pool: {e}") from e
        logger.debug(
            "connection pool ready min=%d max=%d table=%s",
            db_cfg.pool_min,
            db_cfg.pool_max,
            db_cfg.table,
        )
        return cls(pool, table=db_cfg.table, default_timeout=default_timeout)

    def close(self) -> None:
        if self._pool is not None and not getattr(self._pool, "closed", False):
            self._pool.closeall()

    def __enter__(self) -> ReconciliationStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def _table(self) -> sql.Composable:
        return sql.Identifier(*self.table.split("."))

    @contextmanager
    def _cursor(self, timeout: float | None = None) -> Iterator[Any]:
        """Borrow a connection, yield a cursor inside one transaction.

        Commits on normal exit, rolls back on error. Driver connectivity
        errors (including statement timeout cancellation) become
        StoreUnavailable.
        """
        try:
            conn = self._pool.getconn()
        except (PoolError, psycopg2.OperationalError) as e:
            raise StoreUnavailable(f"no database connection available: {e}") from e
        broken = False
        try:
            with conn.cursor() as cur:
                ms = _timeout_ms(timeout if timeout is not None else self.default_timeout)
                if ms is not None:
                    cur.execute("SET LOCAL statement_timeout = %s", (ms,))
                yield cur
            conn.commit()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            broken = bool(getattr(conn, "closed", False))
            self._safe_rollback(conn)
            raise StoreUnavailable(str(e).strip()) from e
        except Exception:
            self._safe_rollback(conn)
            raise
        finally:
            self._pool.putconn(conn, close=broken)

    @staticmethod
    def _safe_rollback(conn: Any) -> None:
        if getattr(conn, "closed", False):
            return
        try:
            conn.rollback()
        except psycopg2.Error:
            logger.debug("rollback failed", exc_info=True)

    def ping(self, timeout: float | None = None) -> bool:
        with self._cursor(timeout) as cur:
            cur.execute("SELECT 1")
            return cur.fetchone() == (1,)

    def point_lookup(
        self, order_number: str, material_number: str, timeout: float | None = None
    ) -> list[dict[str, Any]]:
        """Stored rows (SCAN_COLUMNS subset) for one identity."""
        query = sql.SQL(
            "SELECT ordernumber, material_number, batchnumber, status FROM {} "
            "WHERE ordernumber = %s AND material_number = %s"
        ).format(self._table)
        try:
            with self._cursor(timeout) as cur:
                cur.execute(query, (order_number, material_number))
                return _rows_as_dicts(cur)
        except psycopg2.Error as e:
            raise StoreError(f"lookup failed: {e}") from e

    def scan_all(self, timeout: float | None = None) -> list[dict[str, Any]]:
        """Every stored row, SCAN_COLUMNS only."""
        query = sql.SQL(
            "SELECT ordernumber, material_number, batchnumber, status FROM {}"
        ).format(self._table)
        try:
            with self._cursor(timeout) as cur:
                cur.execute(query)
                return _rows_as_dicts(cur)
        except psycopg2.Error as e:
            raise StoreError(f"scan failed: {e}") from e

    def insert(self, record: ReconciliationRecord, timeout: float | None = None) -> None:
        """Insert and commit one record."""
        try:
            with self._cursor(timeout) as cur:
                insert_row(cur, self.table, STORE_COLUMNS, record.to_row())
        except psycopg2.Error as e:
            raise StoreWriteError(str(e).strip()) from e

    def insert_many(
        self, records: Sequence[ReconciliationRecord], timeout: float | None = None
    ) -> int:
        """Insert all records in a single transaction; all or nothing."""
        try:
            with self._cursor(timeout) as cur:
                result = batch_insert(cur, self.table, STORE_COLUMNS, [r.to_row() for r in records])
        except BatchInsertError as e:
            raise StoreWriteError(str(e)) from e
        except psycopg2.Error as e:
            raise StoreWriteError(str(e).strip()) from e
        return result.inserted_rows

    def update(
        self, order_number: str, fields: Mapping[str, Any], timeout: float | None = None
    ) -> int:
        """Update attributes of every record with ``order_number``; returns rows updated."""
        if not fields:
            return 0
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(FIELD_TO_COLUMN[name].lower()))
            for name in fields
        )
        query = sql.SQL("UPDATE {} SET {} WHERE ordernumber = %s").format(
            self._table, assignments
        )
        try:
            with self._cursor(timeout) as cur:
                cur.execute(query, (*fields.values(), order_number))
                return cur.rowcount
        except psycopg2.Error as e:
            raise StoreWriteError(str(e).strip()) from e

    def delete(self, order_number: str, timeout: float | None = None) -> int:
        query = sql.SQL("DELETE FROM {} WHERE ordernumber = %s").format(self._table)
        try:
            with self._cursor(timeout) as cur:
                cur.execute(query, (order_number,))
                return cur.rowcount
        except psycopg2.Error as e:
            raise StoreWriteError(str(e).strip()) from e
