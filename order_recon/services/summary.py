from __future__ import annotations

from ..models.processing_result import OperationResult

"""SUMMARY line rendering.

Format:
SUMMARY op={operation} status={status} rows={total} affected={affected}
rejected={rejected} flagged={flagged} elapsed_sec={elapsed}
"""


def _format_number(value: float) -> str:
    # Integral values without a decimal point; tiny values without scientific notation
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: OperationResult) -> str:
    """Render the SUMMARY line for one operation.

    >>> from datetime import datetime, timezone
    >>> from order_recon.models.processing_result import OperationStatus
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> r = OperationResult("add", OperationStatus.SUCCESS, "ok", t, t, total_rows=3, affected_rows=3)
    >>> render_summary_line(r)
    'SUMMARY op=add status=success rows=3 affected=3 rejected=0 flagged=0 elapsed_sec=0'
    """
    return (
        f"SUMMARY op={result.operation} "
        f"status={result.status.value} "
        f"rows={result.total_rows} "
        f"affected={result.affected_rows} "
        f"rejected={len(result.rejections)} "
        f"flagged={result.flagged_rows} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)}"
    )
