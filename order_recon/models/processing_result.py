from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .duplicate import DuplicateReport
from .validation import RowRejection

"""Operation result models for the reconciliation engine.

Each engine operation (add, as-of check, true-duplicate scan, edit, delete)
returns an OperationResult. The status tells the caller whether the batch was
accepted, rejected (and why), or partially committed.
"""


class OperationStatus(Enum):
    """Outcome of one engine operation.

    State mapping to the error taxonomy:
    - SUCCESS: accepted / clean report
    - MALFORMED: MalformedInput (empty upload, missing column, unreadable)
    - INVALID_ROWS: RowValidationError accumulated over the batch
    - DUPLICATES: DuplicateConflict (add flow) or flagged rows (as-of / scan)
    - PARTIAL_FAILURE: PersistenceFailure after some rows were committed
    - NOT_FOUND: edit/delete matched no record
    """
    SUCCESS = "success"
    MALFORMED = "malformed"
    INVALID_ROWS = "invalid_rows"
    DUPLICATES = "duplicates"
    PARTIAL_FAILURE = "partial_failure"
    NOT_FOUND = "not_found"


@dataclass
class OperationResult:
    operation: str  # add / asof-check / true-duplicates / edit / delete
    status: OperationStatus
    message: str
    start_time: datetime
    end_time: datetime
    source: str | None = None  # upload file name or order number
    total_rows: int = 0  # rows read from the upload / scanned
    affected_rows: int = 0  # inserted / updated / deleted
    rejections: list[RowRejection] = field(default_factory=list)
    duplicates: DuplicateReport | None = None
    in_batch_duplicates: DuplicateReport | None = None
    failed_row: int | None = None  # PersistenceFailure row number

    @property
    def ok(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def flagged_rows(self) -> int:
        count = len(self.duplicates) if self.duplicates is not None else 0
        if self.in_batch_duplicates is not None:
            count += len(self.in_batch_duplicates)
        return count
