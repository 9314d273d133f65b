from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta

import pytest

from order_recon.models import (
    DuplicateGroup,
    DuplicateKind,
    DuplicateReport,
    OperationResult,
    OperationStatus,
    RawRow,
    ReconciliationRecord,
)
from order_recon.models.duplicate import report_columns
from order_recon.models.reconciliation_record import FIELD_TO_COLUMN, STORE_COLUMNS


def test_record_is_immutable():
    record = ReconciliationRecord(order_number="A1")
    with pytest.raises(FrozenInstanceError):
        record.order_number = "A2"  # type: ignore[misc]


def test_record_identity():
    assert ReconciliationRecord(order_number="A1", material_number="M1").has_full_identity
    assert not ReconciliationRecord(order_number="A1").has_full_identity
    assert ReconciliationRecord(order_number="A1").identity == ("A1", None)


def test_record_to_row_matches_store_columns():
    record = ReconciliationRecord(order_number="A1", tracking_number="1Z999", created_by="jdoe")
    row = record.to_row()
    assert len(row) == len(STORE_COLUMNS) == len(FIELD_TO_COLUMN)
    assert row[STORE_COLUMNS.index("upstrackingnumber")] == "1Z999"
    assert row[-1] == "jdoe"


def test_raw_row_accessors():
    raw = RawRow(row_number=4, values={"ORDERNUMBER": "A1", "STATUS": None})
    assert raw.columns == ["ORDERNUMBER", "STATUS"]
    assert raw.get("STATUS") is None
    assert raw.get("MISSING") is None


def test_report_columns_first_seen_order():
    assert report_columns([{"a": 1, "b": 2}, {"c": 3, "a": 4}]) == ["a", "b", "c"]


def test_duplicate_report_len_counts_rows_bool_counts_groups():
    empty = DuplicateReport(kind=DuplicateKind.AS_OF)
    assert not empty and len(empty) == 0
    report = DuplicateReport(
        kind=DuplicateKind.TRUE_DUPLICATE,
        groups=[DuplicateGroup(DuplicateKind.TRUE_DUPLICATE, "A1", "M1", ({"x": 1}, {"x": 2}))],
    )
    assert report and len(report) == 2
    assert report.groups[0].size == 2


def test_operation_result_properties():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    result = OperationResult("add", OperationStatus.SUCCESS, "ok", start, start + timedelta(seconds=1.5))
    assert result.ok
    assert result.elapsed_seconds == 1.5
    assert result.flagged_rows == 0
    assert OperationStatus.INVALID_ROWS.value == "invalid_rows"
