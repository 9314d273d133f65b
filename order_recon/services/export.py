from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.duplicate import DuplicateKind, DuplicateReport

"""Report export.

Writes a report row set as CSV (row per record, column per attribute) into
the exports directory. The engine's contract is the exact row set and column
order; file naming below only mirrors the names callers download.
"""

logger = logging.getLogger(__name__)

REPORT_FILENAMES = {
    DuplicateKind.STORE_COLLISION: "duplicates_report.csv",
    DuplicateKind.IN_BATCH: "in_batch_duplicates_report.csv",
    DuplicateKind.AS_OF: "asof_check_duplicates.csv",
    DuplicateKind.TRUE_DUPLICATE: "true_duplicates.csv",
}


def write_rows(rows: Sequence[dict[str, Any]], columns: Sequence[str], path: Path) -> Path:
    """Write rows to ``path`` as CSV with exactly ``columns`` in that order."""
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame(list(rows), columns=list(columns))
    frame.to_csv(path, index=False, encoding="utf-8")
    logger.debug("export rows=%d cols=%d path=%s", len(frame), len(columns), path)
    return path


def export_report(report: DuplicateReport, exports_dir: Path, filename: str | None = None) -> Path | None:
    """Export a duplicate report; sets and returns ``report.export_path``.

    Empty reports produce no file and return None.
    """
    if not report:
        return None
    name = filename or REPORT_FILENAMES[report.kind]
    report.export_path = write_rows(report.rows, report.columns, exports_dir / name)
    return report.export_path
