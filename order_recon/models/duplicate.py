from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

"""Duplicate detection result models.

DuplicateGroup collects the report rows that share one identity key under a
single duplicate definition. DuplicateReport is the exportable row set handed
back to the caller, with an exact column order.
"""

__all__ = [
    "DuplicateKind",
    "DuplicateGroup",
    "DuplicateReport",
    "report_columns",
]


class DuplicateKind(Enum):
    """Which duplicate definition produced a group.

    - STORE_COLLISION: incoming row identity already present in the store
    - IN_BATCH: identity repeated inside one upload (hardening check)
    - AS_OF: known identity whose stored batch numbers disagree with the upload
    - TRUE_DUPLICATE: store identity resolving to more than one batch number
    """
    STORE_COLLISION = "store-collision"
    IN_BATCH = "in-batch"
    AS_OF = "as-of"
    TRUE_DUPLICATE = "true-duplicate"


@dataclass(frozen=True)
class DuplicateGroup:
    kind: DuplicateKind
    order_number: str | None
    material_number: str | None
    rows: tuple[dict[str, Any], ...]
    row_numbers: tuple[int, ...] = ()  # upload row numbers, empty for store scans

    @property
    def identity(self) -> tuple[str | None, str | None]:
        return (self.order_number, self.material_number)

    @property
    def size(self) -> int:
        return len(self.rows)


def report_columns(rows: list[dict[str, Any]]) -> list[str]:
    """Union of row keys in first-seen order."""
    columns: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


@dataclass
class DuplicateReport:
    kind: DuplicateKind
    groups: list[DuplicateGroup] = field(default_factory=list)
    export_path: Path | None = None

    @property
    def rows(self) -> list[dict[str, Any]]:
        return [row for g in self.groups for row in g.rows]

    @property
    def columns(self) -> list[str]:
        return report_columns(self.rows)

    def __len__(self) -> int:
        return sum(g.size for g in self.groups)

    def __bool__(self) -> bool:
        return bool(self.groups)
