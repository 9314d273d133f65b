from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from itertools import groupby
from typing import Any

from ..models.duplicate import DuplicateGroup, DuplicateKind, DuplicateReport

"""True-duplicate scanner.

Invariant checked: one (ORDERNUMBER, MATERIAL_NUMBER) identity resolves to
exactly one BATCHNUMBER. The store is partitioned by identity; a partition is
reported when it holds more than one row AND more than one distinct batch
number (NULL counts as one distinct value). Identical repeated rows with the
same batch are not reported.

Output rows: ORDERNUMBER, MATERIAL_NUMBER, BATCHNUMBER, STATUS, DUPLICATECOUNT
ordered by (ORDERNUMBER, MATERIAL_NUMBER, BATCHNUMBER, STATUS), NULLs last.
"""

logger = logging.getLogger(__name__)

TRUE_DUPLICATE_COLUMNS = ("ORDERNUMBER", "MATERIAL_NUMBER", "BATCHNUMBER", "STATUS", "DUPLICATECOUNT")


def _nulls_last(value: Any) -> tuple[bool, str]:
    return (value is None, "" if value is None else str(value))


def _identity(row: dict[str, Any]) -> tuple[Any, Any]:
    return (row.get("ORDERNUMBER"), row.get("MATERIAL_NUMBER"))


def _sort_key(row: dict[str, Any]) -> tuple[tuple[bool, str], ...]:
    return tuple(_nulls_last(row.get(c)) for c in TRUE_DUPLICATE_COLUMNS[:4])


def find_true_duplicates(stored_rows: Iterable[dict[str, Any]]) -> DuplicateReport:
    """Partition stored rows by identity and report conflicting partitions.

    Pure function of its input: the same rows always give the same, identically
    ordered report.
    """
    partitions: dict[tuple[Any, Any], list[dict[str, Any]]] = defaultdict(list)
    for row in stored_rows:
        partitions[_identity(row)].append(row)

    flagged: list[dict[str, Any]] = []
    for members in partitions.values():
        distinct_batches = {m.get("BATCHNUMBER") for m in members}
        if len(members) > 1 and len(distinct_batches) > 1:
            count = len(members)
            flagged.extend(
                {
                    "ORDERNUMBER": m.get("ORDERNUMBER"),
                    "MATERIAL_NUMBER": m.get("MATERIAL_NUMBER"),
                    "BATCHNUMBER": m.get("BATCHNUMBER"),
                    "STATUS": m.get("STATUS"),
                    "DUPLICATECOUNT": count,
                }
                for m in members
            )
    flagged.sort(key=_sort_key)

    # Rows of one identity are contiguous after sorting
    report = DuplicateReport(kind=DuplicateKind.TRUE_DUPLICATE)
    for (order_number, material_number), group_rows in groupby(flagged, key=_identity):
        report.groups.append(
            DuplicateGroup(
                kind=DuplicateKind.TRUE_DUPLICATE,
                order_number=order_number,
                material_number=material_number,
                rows=tuple(group_rows),
            )
        )
    logger.debug("true-duplicate scan: %d identities, %d rows", len(report.groups), len(flagged))
    return report

