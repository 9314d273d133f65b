from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RawRow model for uploaded reconciliation sheets.

RawRow represents a single data row of an uploaded sheet before sanitization:
header-derived column names mapped to raw cell values, in sheet column order.
"""

__all__ = [
    "RawRow",
]


@dataclass(frozen=True)
class RawRow:
    """Untyped upload row (one per sheet data row, order-preserving).

    ``row_number`` is 1-based over data rows (the header row is not counted),
    matching the row numbers reported back in rejections.
    Blank cells are stored as ``None``.
    """
    row_number: int
    values: dict[str, Any]

    @property
    def columns(self) -> list[str]:
        return list(self.values.keys())

    def get(self, column: str) -> Any:
        return self.values.get(column)
