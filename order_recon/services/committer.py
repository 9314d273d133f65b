from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..db.store import StoreUnavailable, StoreWriteError
from ..models.config_models import COMMIT_MODE_BATCH, COMMIT_MODE_ROW
from ..models.validation import ValidatedRow
from .progress import ProgressTracker

"""Batch committer.

Two commit modes:
- row (default): one INSERT + COMMIT per record. A failure, a lost
  connection or a statement timeout included, leaves every earlier record
  committed and skips the remaining ones (partial success).
- batch: every record in one transaction. A failure rolls the whole batch
  back, so nothing from the upload is committed. This differs from the
  row-mode behavior and must be chosen explicitly.

Only batches that passed validation and duplicate checks reach this module.
"""

logger = logging.getLogger(__name__)


class PersistenceFailure(Exception):
    """A store write failed mid-batch.

    ``committed`` rows stay committed in row mode; ``failed_row`` is the
    upload row number of the record that failed (None when the whole batch
    was sent as one statement).
    """

    def __init__(self, message: str, committed: int, failed_row: int | None) -> None:
        super().__init__(message)
        self.committed = committed
        self.failed_row = failed_row


def commit_rows(
    rows: Sequence[ValidatedRow],
    store: Any,
    *,
    mode: str = COMMIT_MODE_ROW,
    timeout: float | None = None,
) -> int:
    """Persist every record; returns the number inserted."""
    if not rows:
        return 0
    if mode == COMMIT_MODE_BATCH:
        return _commit_batch(rows, store, timeout)
    if mode != COMMIT_MODE_ROW:
        raise ValueError(f"unknown commit mode: {mode}")
    return _commit_each(rows, store, timeout)


def _commit_each(rows: Sequence[ValidatedRow], store: Any, timeout: float | None) -> int:
    inserted = 0
    with ProgressTracker(len(rows), description="Inserting", unit="row") as progress:
        for row in rows:
            try:
                store.insert(row.record, timeout=timeout)
            except (StoreWriteError, StoreUnavailable) as e:
                logger.error(
                    "insert failed at row=%d order=%s after %d committed: %s",
                    row.row_number,
                    row.record.order_number,
                    inserted,
                    e,
                )
                raise PersistenceFailure(str(e), committed=inserted, failed_row=row.row_number) from e
            inserted += 1
            progress.advance()
    return inserted


def _commit_batch(rows: Sequence[ValidatedRow], store: Any, timeout: float | None) -> int:
    try:
        return store.insert_many([r.record for r in rows], timeout=timeout)
    except StoreWriteError as e:
        logger.error("batch insert rolled back (%d rows): %s", len(rows), e)
        raise PersistenceFailure(str(e), committed=0, failed_row=None) from e
