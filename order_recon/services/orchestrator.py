from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..excel.reader import UploadReadError, read_upload
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ReconConfig
from ..models.duplicate import DuplicateReport
from ..models.processing_result import OperationResult, OperationStatus
from ..models.row_data import RawRow
from .asof_check import check_as_of
from .committer import PersistenceFailure, commit_rows
from .duplicate_check import DuplicateConflict, check_duplicates
from .export import export_report
from .sanitizer import (
    MalformedInput,
    RowValidationError,
    iter_rejection_lines,
    require_valid,
    sanitize_fields,
    validate_batch,
)
from .staging import staged_upload
from .true_duplicates import find_true_duplicates

"""Operation orchestration for the reconciliation engine.

Wires sanitizer, duplicate checks, committer, as-of check and true-duplicate
scan into caller-facing operations. Expected failures (malformed upload,
invalid rows, duplicates, persistence failure) are turned into an
OperationResult and mirrored into the JSON Lines error log. Store
connectivity failures (StoreUnavailable) are fatal and propagate, except
during a row-mode commit where they become a PersistenceFailure carrying the
committed count.

Flow for the add operation:
    stage upload -> read -> validate whole batch -> duplicate check -> commit
The staged upload is removed on every exit path.
"""

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _timeout(cfg: ReconConfig, timeout: float | None) -> float | None:
    return timeout if timeout is not None else cfg.statement_timeout_seconds


def _read_staged(upload: Path, cfg: ReconConfig) -> list[RawRow]:
    """Stage, read and release an upload; the staged copy never outlives this call."""
    try:
        with staged_upload(upload, Path(cfg.uploads_directory)) as staged:
            return read_upload(staged)
    except FileNotFoundError as e:
        raise MalformedInput(str(e), error_type="UNREADABLE_UPLOAD") from e
    except UploadReadError as e:
        raise MalformedInput(str(e), error_type="UNREADABLE_UPLOAD") from e


def _log_duplicates(error_log: ErrorLogBuffer, source: str, report: DuplicateReport | None, error_type: str) -> None:
    if not report:
        return
    for group in report.groups:
        for row_number in group.row_numbers or (-1,):
            error_log.add(
                source,
                row_number,
                error_type,
                f"ORDERNUMBER={group.order_number} MATERIAL_NUMBER={group.material_number}",
            )


def add_reconciliation(
    upload: Path,
    store: Any,
    cfg: ReconConfig,
    username: str | None = None,
    timeout: float | None = None,
) -> OperationResult:
    """Validate an upload, reject it on any invalid row or duplicate, else commit it."""
    start = _now()
    timeout = _timeout(cfg, timeout)
    error_log = ErrorLogBuffer(Path(cfg.logs_directory))
    source = upload.name
    rows: list[RawRow] = []

    def result(status: OperationStatus, message: str, **kwargs: Any) -> OperationResult:
        return OperationResult(
            operation="add",
            status=status,
            message=message,
            start_time=start,
            end_time=_now(),
            source=source,
            total_rows=len(rows),
            **kwargs,
        )

    try:
        rows = _read_staged(upload, cfg)
        logger.info("upload=%s rows=%d", source, len(rows))
        report = validate_batch(rows, created_by=username or cfg.default_user)
        accepted = require_valid(report)
        check_duplicates(
            accepted,
            store,
            check_in_batch=cfg.check_in_batch_duplicates,
            timeout=timeout,
        )
        inserted = commit_rows(accepted, store, mode=cfg.commit_mode, timeout=timeout)
        return result(OperationStatus.SUCCESS, f"{inserted} record(s) inserted.", affected_rows=inserted)

    except MalformedInput as e:
        logger.debug("upload=%s %s", source, e)
        error_log.add(source, -1, e.error_type, str(e))
        return result(OperationStatus.MALFORMED, str(e))

    except RowValidationError as e:
        logger.debug("upload=%s %s", source, e)
        for line in iter_rejection_lines(e.rejections):
            logger.warning(line)
        for rej in e.rejections:
            for issue in rej.reasons:
                error_log.add(source, rej.row_number, issue.error_type, issue.message)
        return result(OperationStatus.INVALID_ROWS, str(e), rejections=e.rejections)

    except DuplicateConflict as e:
        exports_dir = Path(cfg.exports_directory)
        export_report(e.store_report, exports_dir)
        if e.in_batch_report is not None:
            export_report(e.in_batch_report, exports_dir)
        _log_duplicates(error_log, source, e.store_report, "DUPLICATE_IN_STORE")
        _log_duplicates(error_log, source, e.in_batch_report, "DUPLICATE_IN_BATCH")
        logger.debug("upload=%s %s", source, e)
        return result(
            OperationStatus.DUPLICATES,
            str(e),
            duplicates=e.store_report,
            in_batch_duplicates=e.in_batch_report,
        )

    except PersistenceFailure as e:
        error_log.add(source, e.failed_row if e.failed_row is not None else -1, "PERSISTENCE_FAILURE", str(e))
        message = (
            f"insert failed at row {e.failed_row}; {e.committed} record(s) committed before the failure"
            if e.failed_row is not None
            else f"batch insert failed and was rolled back: {e}"
        )
        return result(
            OperationStatus.PARTIAL_FAILURE,
            message,
            affected_rows=e.committed,
            failed_row=e.failed_row,
        )

    finally:
        error_log.flush()


def check_as_of_upload(
    upload: Path,
    store: Any,
    cfg: ReconConfig,
    timeout: float | None = None,
) -> OperationResult:
    """Run the as-of consistency check over an uploaded snapshot; never writes the store."""
    start = _now()
    timeout = _timeout(cfg, timeout)
    error_log = ErrorLogBuffer(Path(cfg.logs_directory))
    source = upload.name
    try:
        try:
            rows = _read_staged(upload, cfg)
        except MalformedInput as e:
            logger.debug("upload=%s %s", source, e)
            error_log.add(source, -1, e.error_type, str(e))
            return OperationResult(
                operation="asof-check",
                status=OperationStatus.MALFORMED,
                message=str(e),
                start_time=start,
                end_time=_now(),
                source=source,
            )

        report = check_as_of(rows, store, cfg.as_of_columns, timeout=timeout)
        if report:
            export_report(report, Path(cfg.exports_directory))
            _log_duplicates(error_log, source, report, "AS_OF_MISMATCH")
            status = OperationStatus.DUPLICATES
            message = f"Found {len(report)} duplicates."
        else:
            status = OperationStatus.SUCCESS
            message = "No duplicates found."
        return OperationResult(
            operation="asof-check",
            status=status,
            message=message,
            start_time=start,
            end_time=_now(),
            source=source,
            total_rows=len(rows),
            duplicates=report,
        )
    finally:
        error_log.flush()


def find_true_duplicate_groups(
    store: Any,
    cfg: ReconConfig,
    export: bool = False,
    timeout: float | None = None,
) -> OperationResult:
    """Scan the whole store for identities with more than one batch number."""
    start = _now()
    stored = store.scan_all(timeout=_timeout(cfg, timeout))
    report = find_true_duplicates(stored)
    if report and export:
        export_report(report, Path(cfg.exports_directory))
    if report:
        status = OperationStatus.DUPLICATES
        message = f"Found {len(report.groups)} identities with conflicting batch numbers ({len(report)} rows)."
    else:
        status = OperationStatus.SUCCESS
        message = "No true duplicates found."
    return OperationResult(
        operation="true-duplicates",
        status=status,
        message=message,
        start_time=start,
        end_time=_now(),
        total_rows=len(stored),
        duplicates=report,
    )


def edit_reconciliation(
    order_number: str,
    fields: Mapping[str, Any],
    store: Any,
    cfg: ReconConfig,
    timeout: float | None = None,
) -> OperationResult:
    """Update attributes of every record carrying ``order_number``."""
    start = _now()

    def result(status: OperationStatus, message: str, **kwargs: Any) -> OperationResult:
        return OperationResult(
            operation="edit",
            status=status,
            message=message,
            start_time=start,
            end_time=_now(),
            source=order_number,
            **kwargs,
        )

    try:
        clean = sanitize_fields(fields)
    except RowValidationError as e:
        messages = [m for rej in e.rejections for m in rej.messages]
        logger.debug("edit order=%s %s", order_number, "; ".join(messages))
        return result(OperationStatus.INVALID_ROWS, "; ".join(messages), rejections=e.rejections)
    except ValueError as e:
        logger.debug("edit order=%s %s", order_number, e)
        return result(OperationStatus.MALFORMED, str(e))
    if not clean:
        return result(OperationStatus.MALFORMED, "no fields to update")

    updated = store.update(order_number, clean, timeout=_timeout(cfg, timeout))
    if updated == 0:
        return result(OperationStatus.NOT_FOUND, f"no record with ORDERNUMBER={order_number}")
    logger.info("edit order=%s fields=%s rows=%d", order_number, sorted(clean), updated)
    return result(OperationStatus.SUCCESS, "Record updated successfully.", affected_rows=updated)


def delete_reconciliation(
    order_number: str,
    store: Any,
    cfg: ReconConfig,
    timeout: float | None = None,
) -> OperationResult:
    start = _now()
    deleted = store.delete(order_number, timeout=_timeout(cfg, timeout))
    if deleted == 0:
        status, message = OperationStatus.NOT_FOUND, f"no record with ORDERNUMBER={order_number}"
    else:
        status, message = OperationStatus.SUCCESS, "Record deleted."
        logger.info("delete order=%s rows=%d", order_number, deleted)
    return OperationResult(
        operation="delete",
        status=status,
        message=message,
        start_time=start,
        end_time=_now(),
        source=order_number,
        affected_rows=deleted,
    )


def check_store(store: Any, cfg: ReconConfig, timeout: float | None = None) -> OperationResult:
    """Round-trip ``SELECT 1``; StoreUnavailable propagates to the caller."""
    start = _now()
    store.ping(timeout=_timeout(cfg, timeout))
    logger.info("store reachable table=%s", cfg.database.table)
    return OperationResult(
        operation="check-db",
        status=OperationStatus.SUCCESS,
        message="Database connection OK.",
        start_time=start,
        end_time=_now(),
    )
