"""Domain models for the order reconciliation engine."""

from .config_models import AsOfColumns, DatabaseConfig, ReconConfig
from .duplicate import DuplicateGroup, DuplicateKind, DuplicateReport
from .processing_result import OperationResult, OperationStatus
from .reconciliation_record import ReconciliationRecord
from .row_data import RawRow
from .validation import FieldIssue, RowRejection, ValidatedRow, ValidationReport

__all__ = [
    # Configuration models
    "AsOfColumns",
    "DatabaseConfig",
    "ReconConfig",
    # Records and validation
    "RawRow",
    "ReconciliationRecord",
    "FieldIssue",
    "RowRejection",
    "ValidatedRow",
    "ValidationReport",
    # Reports and results
    "DuplicateGroup",
    "DuplicateKind",
    "DuplicateReport",
    "OperationResult",
    "OperationStatus",
]
