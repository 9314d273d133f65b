from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .reconciliation_record import ReconciliationRecord
from .row_data import RawRow

"""Validation outcome models produced by the row sanitizer."""

__all__ = [
    "FieldIssue",
    "RowRejection",
    "ValidatedRow",
    "ValidationReport",
]


@dataclass(frozen=True)
class FieldIssue:
    """One field-level problem found in a row."""
    column: str
    message: str
    raw_value: Any = None
    error_type: str = "INVALID_VALUE"  # UPPER_SNAKE, mirrored into the error log


@dataclass(frozen=True)
class RowRejection:
    row_number: int  # 1-based data row number
    reasons: tuple[FieldIssue, ...]
    order_number: str | None = None

    @property
    def messages(self) -> list[str]:
        return [r.message for r in self.reasons]


@dataclass(frozen=True)
class ValidatedRow:
    """A sanitized record together with the upload row it came from.

    The raw row is kept so duplicate reports can echo the original columns.
    """
    record: ReconciliationRecord
    raw: RawRow

    @property
    def row_number(self) -> int:
        return self.raw.row_number


@dataclass
class ValidationReport:
    """Whole-batch validation result.

    A batch is accepted only when ``rejections`` is empty; accepted rows of a
    rejected batch are never committed.
    """
    accepted: list[ValidatedRow] = field(default_factory=list)
    rejections: list[RowRejection] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.rejections

    @property
    def records(self) -> list[ReconciliationRecord]:
        return [v.record for v in self.accepted]

    def issue_count(self) -> int:
        return sum(len(r.reasons) for r in self.rejections)
