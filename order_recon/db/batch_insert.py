from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import execute_values

"""INSERT helpers for reconciliation rows.

insert_row: single-row INSERT (row commit mode, one statement per record)
batch_insert: psycopg2.extras.execute_values for the whole batch (batch commit mode)

Neither function commits; transaction boundaries belong to the store.
"""


class BatchInsertError(Exception):
    """Wraps a non-connectivity driver error raised by execute_values."""


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def _table_identifier(table: str) -> sql.Composable:
    """``schema.table`` or ``table`` as a quoted identifier."""
    return sql.Identifier(*table.split("."))


def _insert_head(table: str, columns: Sequence[str]) -> sql.Composed:
    return sql.SQL("INSERT INTO {} ({})").format(
        _table_identifier(table),
        sql.SQL(", ").join(sql.Identifier(c) for c in columns),
    )


def insert_row(cursor: Any, table: str, columns: Sequence[str], row: Sequence[Any]) -> None:
    query = sql.SQL("{} VALUES ({})").format(
        _insert_head(table, columns),
        sql.SQL(", ").join(sql.Placeholder() * len(columns)),
    )
    cursor.execute(query, tuple(row))


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (``name`` or ``schema.name``)
    columns: insert columns, in row value order
    rows: row value sequences
    page_size: execute_values page size
    """
    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0)

    query = sql.SQL("{} VALUES %s").format(_insert_head(table, columns))
    try:
        execute_values(cursor, query, rows_list, page_size=page_size)
    except psycopg2.OperationalError:
        raise
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    return InsertResult(inserted_rows=len(rows_list))
