from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.config_models import AsOfColumns
from ..models.duplicate import DuplicateGroup, DuplicateKind, DuplicateReport
from ..models.row_data import RawRow
from .progress import ProgressTracker
from .sanitizer import cell_text

"""As-of consistency check.

A row of an as-of snapshot is flagged when its (order, material) identity is
already stored AND none of the stored batch numbers equals the uploaded one.
Unknown identities are never flagged; rows missing order or material are
skipped without error. Read only: the store is never written.
"""

logger = logging.getLogger(__name__)


def is_as_of_mismatch(stored: Sequence[dict[str, Any]], batch_number: str | None) -> bool:
    """True when identity is known and no stored batch number matches.

    Both sides are trimmed strings. A stored NULL (or blank) batch never
    matches, so an upload without BATCHNUMBER is flagged against it.
    """
    if not stored:
        return False
    stored_batches = {b for b in (cell_text(r.get("BATCHNUMBER")) for r in stored) if b is not None}
    return batch_number not in stored_batches


def check_as_of(
    rows: Sequence[RawRow],
    store: Any,
    columns: AsOfColumns | None = None,
    timeout: float | None = None,
) -> DuplicateReport:
    """Run the as-of check over an uploaded snapshot (one lookup per row)."""
    columns = columns or AsOfColumns()
    report = DuplicateReport(kind=DuplicateKind.AS_OF)
    skipped = 0
    with ProgressTracker(len(rows), description="As-of check", unit="row") as progress:
        for row in rows:
            progress.advance()
            order_number = cell_text(row.get(columns.order_number))
            material_number = cell_text(row.get(columns.material_number))
            if not order_number or not material_number:
                skipped += 1
                continue
            batch_number = cell_text(row.get(columns.batch_number))

            stored = store.point_lookup(order_number, material_number, timeout=timeout)
            if not is_as_of_mismatch(stored, batch_number):
                continue
            logger.debug(
                "row=%d identity=%s/%s batch=%s not among stored batches",
                row.row_number,
                order_number,
                material_number,
                batch_number,
            )
            report.groups.append(
                DuplicateGroup(
                    kind=DuplicateKind.AS_OF,
                    order_number=order_number,
                    material_number=material_number,
                    rows=(
                        {
                            "ORDERNUMBER": order_number,
                            "MATERIAL_NUMBER": material_number,
                            "BATCHNUMBER": batch_number,
                            **row.values,
                        },
                    ),
                    row_numbers=(row.row_number,),
                )
            )
    if skipped:
        logger.debug("as-of check skipped %d rows without order/material", skipped)
    return report
