from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any

from ..models.duplicate import DuplicateGroup, DuplicateKind, DuplicateReport
from ..models.validation import ValidatedRow
from .progress import ProgressTracker

"""Pre-commit duplicate checks for the add flow.

Store collision: an incoming row whose (ORDERNUMBER, MATERIAL_NUMBER) pair
already exists in the store, whatever its other attributes. Rows missing
either identity field are exempt. One point lookup per row.

In-batch collision (optional hardening): an identity repeated inside the same
upload. Reported separately from store collisions.
"""

logger = logging.getLogger(__name__)


class DuplicateConflict(Exception):
    """Batch rejected because at least one row collides."""

    def __init__(
        self,
        store_report: DuplicateReport,
        in_batch_report: DuplicateReport | None = None,
    ) -> None:
        self.store_report = store_report
        self.in_batch_report = in_batch_report
        total = len(store_report) + (len(in_batch_report) if in_batch_report else 0)
        super().__init__(f"Found {total} duplicate entries.")


def duplicate_row(row: ValidatedRow) -> dict[str, Any]:
    """Report row: resolved identity first, then every original upload column.

    Upload columns of the same name overwrite the resolved value but keep the
    leading position, so an exported ORDERNUMBER is the raw upload cell (e.g.
    untrimmed) rather than the trimmed key that was looked up. Group-level
    ``order_number``/``material_number`` hold the looked-up key.
    """
    return {
        "ORDERNUMBER": row.record.order_number,
        "MATERIAL_NUMBER": row.record.material_number,
        **row.raw.values,
    }


def find_store_collisions(
    rows: Sequence[ValidatedRow],
    store: Any,
    timeout: float | None = None,
) -> DuplicateReport:
    """Flag rows whose identity already exists in the store.

    Each flagged row forms its own group (the colliding store rows are not
    echoed back, only the upload row).
    """
    report = DuplicateReport(kind=DuplicateKind.STORE_COLLISION)
    with ProgressTracker(len(rows), description="Checking duplicates", unit="row") as progress:
        for row in rows:
            record = row.record
            if record.has_full_identity:
                existing = store.point_lookup(
                    record.order_number, record.material_number, timeout=timeout
                )
                if existing:
                    logger.debug(
                        "row=%d identity=%s/%s already stored (%d)",
                        row.row_number,
                        record.order_number,
                        record.material_number,
                        len(existing),
                    )
                    report.groups.append(
                        DuplicateGroup(
                            kind=DuplicateKind.STORE_COLLISION,
                            order_number=record.order_number,
                            material_number=record.material_number,
                            rows=(duplicate_row(row),),
                            row_numbers=(row.row_number,),
                        )
                    )
            progress.advance()
    return report


def find_in_batch_collisions(rows: Sequence[ValidatedRow]) -> DuplicateReport:
    """Group the upload by identity; identities seen more than once are flagged."""
    by_identity: dict[tuple[str, str | None], list[ValidatedRow]] = defaultdict(list)
    for row in rows:
        if row.record.has_full_identity:
            by_identity[row.record.identity].append(row)

    report = DuplicateReport(kind=DuplicateKind.IN_BATCH)
    for (order_number, material_number), members in by_identity.items():
        if len(members) < 2:
            continue
        report.groups.append(
            DuplicateGroup(
                kind=DuplicateKind.IN_BATCH,
                order_number=order_number,
                material_number=material_number,
                rows=tuple(duplicate_row(m) for m in members),
                row_numbers=tuple(m.row_number for m in members),
            )
        )
    return report


def check_duplicates(
    rows: Sequence[ValidatedRow],
    store: Any,
    *,
    check_in_batch: bool = False,
    timeout: float | None = None,
) -> None:
    """Raise DuplicateConflict if any row collides; returns None when the batch is clean."""
    in_batch = find_in_batch_collisions(rows) if check_in_batch else None
    store_report = find_store_collisions(rows, store, timeout=timeout)
    if store_report or in_batch:
        raise DuplicateConflict(store_report, in_batch)
