from __future__ import annotations

import logging
import numbers
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import pandas as pd

from ..models.reconciliation_record import (
    FIELD_TO_COLUMN,
    REQUIRED_COLUMNS,
    ReconciliationRecord,
)
from ..models.row_data import RawRow
from ..models.validation import FieldIssue, RowRejection, ValidatedRow, ValidationReport

"""Row sanitizer: RawRow -> ReconciliationRecord | RowRejection.

Rules:
- ORDERNUMBER must be non-empty after trimming
- SALESDOCUMENT / YEAR: a present value must match NUMERIC_PATTERN, absent -> None
- ORDERDATE / SHIPOUTDATE: best-effort parse, failure -> None (never a rejection)
- every other column: optional text, blank -> None

Pure transform; nothing here touches the store.
"""

logger = logging.getLogger(__name__)

NUMERIC_PATTERN = re.compile(r"^-?\d*\.?\d+$")
_INTEGER_PATTERN = re.compile(r"^-?\d+$")

NUMERIC_FIELDS = ("sales_document", "year")
DATE_FIELDS = ("order_date", "ship_out_date")
TEXT_FIELDS = (
    "batch_number",
    "material_number",
    "club_name",
    "order_type",
    "status",
    "cdd",
    "tracking_number",
)
# created_by is set from the uploading user, not from a sheet column
EDITABLE_FIELDS = NUMERIC_FIELDS + DATE_FIELDS + TEXT_FIELDS

# Excel serial day 0
_EXCEL_EPOCH = "1899-12-30"


class MalformedInput(Exception):
    """Batch-level structural problem (empty upload, missing required column)."""

    def __init__(self, message: str, error_type: str = "MALFORMED_INPUT") -> None:
        super().__init__(message)
        self.error_type = error_type


class RowValidationError(Exception):
    """One or more rows failed field validation; carries every rejection."""

    def __init__(self, rejections: Sequence[RowRejection]) -> None:
        self.rejections = list(rejections)
        super().__init__(
            f"Found {len(self.rejections)} rows with invalid data. Upload rejected."
        )


class InvalidNumber(ValueError):
    pass


def cell_text(val: Any) -> str | None:
    """Render a cell as trimmed text; blank -> None.

    Integral floats render without the trailing ``.0`` Excel numeric cells
    would otherwise carry (12345.0 -> "12345").
    """
    if val is None:
        return None
    if isinstance(val, str):
        text = val.strip()
        return text or None
    if isinstance(val, bool):
        return str(val)
    if isinstance(val, numbers.Integral):
        return str(int(val))
    if isinstance(val, numbers.Real):
        f = float(val)
        if f != f:  # NaN
            return None
        if f.is_integer():
            return str(int(f))
        return repr(f)
    if isinstance(val, (datetime, date)):
        return val.isoformat()
    text = str(val).strip()
    return text or None


def parse_number(val: Any, column: str = "unknown") -> int | Decimal | None:
    """Parse a numeric cell.

    Returns None when the value is absent (None / blank). Raises InvalidNumber
    when a value is present but does not match NUMERIC_PATTERN.
    """
    if val is None:
        return None
    if isinstance(val, bool):
        raise InvalidNumber(f"Invalid numeric value in {column}: \"{val}\"")
    if isinstance(val, Decimal):
        if not val.is_finite():
            raise InvalidNumber(f"Invalid numeric value in {column}: \"{val}\"")
        return int(val) if val == val.to_integral_value() else val
    if isinstance(val, numbers.Integral):
        return int(val)
    if isinstance(val, numbers.Real):
        f = float(val)
        if f != f:
            return None
        if f in (float("inf"), float("-inf")):
            raise InvalidNumber(f"Invalid numeric value in {column}: \"{val}\"")
        return int(f) if f.is_integer() else Decimal(repr(f))
    text = str(val).strip()
    if not text:
        return None
    if not NUMERIC_PATTERN.match(text):
        raise InvalidNumber(f"Invalid numeric value in {column}: \"{text}\"")
    if _INTEGER_PATTERN.match(text):
        return int(text)
    return Decimal(text)


def parse_date(val: Any) -> date | None:
    """Best-effort date parse; anything unparseable is None."""
    if val is None:
        return None
    if isinstance(val, datetime):
        return None if pd.isna(val) else val.date()
    if isinstance(val, date):
        return val
    try:
        if isinstance(val, numbers.Real) and not isinstance(val, bool):
            ts = pd.to_datetime(val, unit="D", origin=_EXCEL_EPOCH, errors="coerce")
        else:
            text = str(val).strip()
            if not text:
                return None
            ts = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    return ts.date()


def check_batch_shape(rows: Sequence[RawRow]) -> None:
    """Whole-batch preconditions, checked before any row is looked at.

    Required columns are checked against the header, not against the cells
    filled in on the first row. A header ORDERNUMBER with a blank first-row cell
    is therefore not a missing column: that row is rejected later as
    "ORDERNUMBER is required".
    """
    if not rows:
        raise MalformedInput("Uploaded file is empty.", error_type="EMPTY_UPLOAD")
    present = set(rows[0].columns)
    missing = [c for c in REQUIRED_COLUMNS if c not in present]
    if missing:
        raise MalformedInput(
            f"Missing required column in Excel file: {', '.join(missing)}",
            error_type="MISSING_COLUMN",
        )


def sanitize_row(raw: RawRow, created_by: str = "unknown") -> ReconciliationRecord | RowRejection:
    """Produce the ValidationOutcome for one row.

    Every problem in the row is reported, in column order
    ORDERNUMBER, SALESDOCUMENT, YEAR.
    """
    issues: list[FieldIssue] = []

    order_number = cell_text(raw.get(FIELD_TO_COLUMN["order_number"]))
    if not order_number:
        issues.append(
            FieldIssue(
                column="ORDERNUMBER",
                message="ORDERNUMBER is required",
                raw_value=raw.get("ORDERNUMBER"),
                error_type="ORDERNUMBER_REQUIRED",
            )
        )

    numbers_out: dict[str, int | Decimal | None] = {}
    for field_name in NUMERIC_FIELDS:
        column = FIELD_TO_COLUMN[field_name]
        raw_value = raw.get(column)
        try:
            numbers_out[field_name] = parse_number(raw_value, column)
        except InvalidNumber as e:
            logger.debug("row=%d %s", raw.row_number, e)
            issues.append(
                FieldIssue(
                    column=column,
                    message=str(e),
                    raw_value=raw_value,
                    error_type="INVALID_NUMBER",
                )
            )

    if issues:
        return RowRejection(
            row_number=raw.row_number, reasons=tuple(issues), order_number=order_number
        )

    text_values = {f: cell_text(raw.get(FIELD_TO_COLUMN[f])) for f in TEXT_FIELDS}
    date_values = {f: parse_date(raw.get(FIELD_TO_COLUMN[f])) for f in DATE_FIELDS}
    return ReconciliationRecord(
        order_number=order_number,
        created_by=created_by,
        **numbers_out,
        **date_values,
        **text_values,
    )


def validate_batch(rows: Sequence[RawRow], created_by: str = "unknown") -> ValidationReport:
    """Sanitize a whole batch, collecting every rejection (no fail-fast).

    Raises MalformedInput for batch-level problems before any row is processed.
    """
    check_batch_shape(rows)
    report = ValidationReport()
    for raw in rows:
        outcome = sanitize_row(raw, created_by)
        if isinstance(outcome, RowRejection):
            report.rejections.append(outcome)
        else:
            report.accepted.append(ValidatedRow(record=outcome, raw=raw))
    logger.debug(
        "validated rows=%d accepted=%d rejected=%d",
        len(rows),
        len(report.accepted),
        len(report.rejections),
    )
    return report


def require_valid(report: ValidationReport) -> list[ValidatedRow]:
    if report.rejections:
        raise RowValidationError(report.rejections)
    return report.accepted


def sanitize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Apply the sanitizer's per-field rules to an edit request.

    Keys may be attribute names (``batch_number``) or upload column names
    (``BATCHNUMBER``). Raises RowValidationError for non-numeric numerics and
    ValueError for unknown fields.
    """
    column_to_field = {v: k for k, v in FIELD_TO_COLUMN.items()}
    clean: dict[str, Any] = {}
    issues: list[FieldIssue] = []
    for key, value in fields.items():
        field_name = key if key in FIELD_TO_COLUMN else column_to_field.get(key.upper())
        if field_name not in EDITABLE_FIELDS:
            raise ValueError(f"unknown or non-editable field: {key}")
        if field_name in NUMERIC_FIELDS:
            try:
                clean[field_name] = parse_number(value, FIELD_TO_COLUMN[field_name])
            except InvalidNumber as e:
                issues.append(
                    FieldIssue(
                        column=FIELD_TO_COLUMN[field_name],
                        message=str(e),
                        raw_value=value,
                        error_type="INVALID_NUMBER",
                    )
                )
        elif field_name in DATE_FIELDS:
            clean[field_name] = parse_date(value)
        else:
            clean[field_name] = cell_text(value)
    if issues:
        raise RowValidationError([RowRejection(row_number=-1, reasons=tuple(issues))])
    return clean


def iter_rejection_lines(rejections: Iterable[RowRejection]) -> Iterable[str]:
    for rej in rejections:
        yield f"row {rej.row_number}: " + "; ".join(rej.messages)
