# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from order_recon.db.store import StoreWriteError
from order_recon.logging.init import reset_logging
from order_recon.models.reconciliation_record import FIELD_TO_COLUMN, ReconciliationRecord


class FakeStore:
    """In-memory stand-in for ReconciliationStore.

    Rows are dicts keyed by upper-case column names, as the real store returns
    them. ``fail_insert_at`` makes the n-th (0-based) single insert raise
    StoreWriteError; ``fail_insert_many`` makes bulk inserts raise.
    """

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        fail_insert_at: int | None = None,
        fail_insert_many: bool = False,
    ) -> None:
        self.rows: list[dict[str, Any]] = [dict(r) for r in rows or []]
        self.fail_insert_at = fail_insert_at
        self.fail_insert_many = fail_insert_many
        self.calls: list[tuple[str, Any]] = []
        self.insert_attempts = 0
        self.closed = False

    @staticmethod
    def record_row(record: ReconciliationRecord) -> dict[str, Any]:
        return {col: getattr(record, name) for name, col in FIELD_TO_COLUMN.items()}

    @property
    def write_calls(self) -> list[tuple[str, Any]]:
        return [c for c in self.calls if c[0] in ("insert", "insert_many", "update", "delete")]

    def ping(self, timeout: float | None = None) -> bool:
        self.calls.append(("ping", timeout))
        return True

    def point_lookup(self, order_number: str, material_number: str, timeout: float | None = None):
        self.calls.append(("point_lookup", (order_number, material_number, timeout)))
        return [
            r
            for r in self.rows
            if r.get("ORDERNUMBER") == order_number and r.get("MATERIAL_NUMBER") == material_number
        ]

    def scan_all(self, timeout: float | None = None):
        self.calls.append(("scan_all", timeout))
        return [dict(r) for r in self.rows]

    def insert(self, record: ReconciliationRecord, timeout: float | None = None) -> None:
        self.calls.append(("insert", record.order_number))
        attempt = self.insert_attempts
        self.insert_attempts += 1
        if self.fail_insert_at is not None and attempt == self.fail_insert_at:
            raise StoreWriteError("value too long for type character varying(20)")
        self.rows.append(self.record_row(record))

    def insert_many(self, records, timeout: float | None = None) -> int:
        self.calls.append(("insert_many", len(records)))
        if self.fail_insert_many:
            raise StoreWriteError("duplicate key value violates unique constraint")
        self.rows.extend(self.record_row(r) for r in records)
        return len(records)

    def update(self, order_number: str, fields: dict[str, Any], timeout: float | None = None) -> int:
        self.calls.append(("update", (order_number, dict(fields))))
        count = 0
        for r in self.rows:
            if r.get("ORDERNUMBER") == order_number:
                for name, value in fields.items():
                    r[FIELD_TO_COLUMN[name]] = value
                count += 1
        return count

    def delete(self, order_number: str, timeout: float | None = None) -> int:
        self.calls.append(("delete", order_number))
        before = len(self.rows)
        self.rows = [r for r in self.rows if r.get("ORDERNUMBER") != order_number]
        return before - len(self.rows)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


@pytest.fixture(autouse=True)
def _fresh_logging():
    # Handlers bind to the sys.stdout current at setup time (capsys swaps it)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    monkeypatch.chdir(tmp_path)
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """exports_directory: ./exports
uploads_directory: ./uploads
logs_directory: ./logs
default_user: tester
commit_mode: row
check_in_batch_duplicates: false
statement_timeout_seconds: 5
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
  table: reconciliation
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "recon.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def make_store() -> type[FakeStore]:
    return FakeStore


@pytest.fixture()
def make_xlsx(temp_workdir: Path) -> Callable[..., Path]:
    """Write rows (list of dicts) to data/<name> as the first sheet of a workbook."""

    def _make(name: str, rows: list[dict[str, Any]], columns: list[str] | None = None) -> Path:
        path = temp_workdir / "data" / name
        frame = pd.DataFrame(rows, columns=columns)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            frame.to_excel(writer, sheet_name="Sheet1", index=False)
        return path

    return _make
