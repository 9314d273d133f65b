from __future__ import annotations

from datetime import UTC, datetime, timedelta

from order_recon.models.duplicate import DuplicateGroup, DuplicateKind, DuplicateReport
from order_recon.models.processing_result import OperationResult, OperationStatus
from order_recon.models.validation import FieldIssue, RowRejection
from order_recon.services.summary import render_summary_line

START = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


def _result(status=OperationStatus.SUCCESS, elapsed=2.0, **kwargs):
    return OperationResult(
        operation="add",
        status=status,
        message="",
        start_time=START,
        end_time=START + timedelta(seconds=elapsed),
        **kwargs,
    )


def test_success_line():
    line = render_summary_line(_result(total_rows=10, affected_rows=10))
    assert line == "SUMMARY op=add status=success rows=10 affected=10 rejected=0 flagged=0 elapsed_sec=2"


def test_fractional_and_tiny_elapsed():
    assert render_summary_line(_result(elapsed=1.23456)).endswith("elapsed_sec=1.235")
    assert render_summary_line(_result(elapsed=0.0005)).endswith("elapsed_sec=0.0005")
    assert render_summary_line(_result(elapsed=0)).endswith("elapsed_sec=0")


def test_rejected_and_flagged_counts():
    rejection = RowRejection(row_number=2, reasons=(FieldIssue("ORDERNUMBER", "ORDERNUMBER is required"),))
    dup = DuplicateReport(
        kind=DuplicateKind.STORE_COLLISION,
        groups=[DuplicateGroup(DuplicateKind.STORE_COLLISION, "A1", "M1", ({"ORDERNUMBER": "A1"},), (1,))],
    )
    in_batch = DuplicateReport(
        kind=DuplicateKind.IN_BATCH,
        groups=[DuplicateGroup(DuplicateKind.IN_BATCH, "A2", "M2", ({}, {}), (3, 4))],
    )
    line = render_summary_line(
        _result(
            status=OperationStatus.DUPLICATES,
            total_rows=4,
            rejections=[rejection],
            duplicates=dup,
            in_batch_duplicates=in_batch,
        )
    )
    assert "status=duplicates" in line
    assert "rejected=1" in line
    assert "flagged=3" in line
