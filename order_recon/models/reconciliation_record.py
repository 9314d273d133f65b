from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any

"""ReconciliationRecord model for the order reconciliation engine.

ReconciliationRecord is the fixed-shape record produced by the row sanitizer.
Every downstream component (duplicate checks, committer, store) works on this
type and never on raw upload column lookups.
"""

__all__ = [
    "ReconciliationRecord",
    "UPLOAD_COLUMNS",
    "STORE_COLUMNS",
    "FIELD_TO_COLUMN",
    "REQUIRED_COLUMNS",
]

# Upload header names for the add flow, in export order.
UPLOAD_COLUMNS: tuple[str, ...] = (
    "ORDERNUMBER",
    "SALESDOCUMENT",
    "ORDERDATE",
    "BATCHNUMBER",
    "YEAR",
    "MATERIAL_NUMBER",
    "CLUB_NAME",
    "ORDERTYPE",
    "STATUS",
    "CDD",
    "SHIPOUTDATE",
    "UPSTRACKINGNUMBER",
)

REQUIRED_COLUMNS: tuple[str, ...] = ("ORDERNUMBER",)

# Attribute name -> upload/store column name
FIELD_TO_COLUMN: dict[str, str] = {
    "order_number": "ORDERNUMBER",
    "sales_document": "SALESDOCUMENT",
    "order_date": "ORDERDATE",
    "batch_number": "BATCHNUMBER",
    "year": "YEAR",
    "material_number": "MATERIAL_NUMBER",
    "club_name": "CLUB_NAME",
    "order_type": "ORDERTYPE",
    "status": "STATUS",
    "cdd": "CDD",
    "ship_out_date": "SHIPOUTDATE",
    "tracking_number": "UPSTRACKINGNUMBER",
    "created_by": "USER_SAP",
}

# Store column order used for INSERT (PostgreSQL folds to lower case)
STORE_COLUMNS: tuple[str, ...] = tuple(c.lower() for c in FIELD_TO_COLUMN.values())


@dataclass(frozen=True)
class ReconciliationRecord:
    """One validated order reconciliation row.

    Absent values are ``None``; an absent numeric is never coerced to zero and
    an absent text value is never an empty string.
    """
    order_number: str
    material_number: str | None = None
    sales_document: int | Decimal | None = None
    order_date: date | None = None
    batch_number: str | None = None
    year: int | Decimal | None = None
    club_name: str | None = None
    order_type: str | None = None
    status: str | None = None
    cdd: str | None = None
    ship_out_date: date | None = None
    tracking_number: str | None = None
    created_by: str = "unknown"

    @property
    def identity(self) -> tuple[str, str | None]:
        return (self.order_number, self.material_number)

    @property
    def has_full_identity(self) -> bool:
        """True when both identity fields are present (identity checks apply)."""
        return bool(self.order_number) and bool(self.material_number)

    def to_row(self) -> tuple[Any, ...]:
        """Values in STORE_COLUMNS order."""
        data = asdict(self)
        return tuple(data[field] for field in FIELD_TO_COLUMN)
