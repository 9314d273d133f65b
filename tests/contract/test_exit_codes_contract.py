from __future__ import annotations

from datetime import UTC, datetime

import pytest

from order_recon.cli.__main__ import (
    EXIT_FATAL,
    EXIT_REJECTED,
    EXIT_SUCCESS,
    exit_code_for,
)
from order_recon.models.processing_result import OperationResult, OperationStatus

"""Exit code contract: 0 success, 2 rejected / duplicates found, 1 fatal."""


def test_exit_code_constants():
    assert EXIT_SUCCESS == 0
    assert EXIT_FATAL == 1
    assert EXIT_REJECTED == 2


@pytest.mark.parametrize(
    "status, code",
    [
        (OperationStatus.SUCCESS, 0),
        (OperationStatus.MALFORMED, 2),
        (OperationStatus.INVALID_ROWS, 2),
        (OperationStatus.DUPLICATES, 2),
        (OperationStatus.NOT_FOUND, 2),
        (OperationStatus.PARTIAL_FAILURE, 1),
    ],
)
def test_every_status_maps_to_an_exit_code(status, code):
    now = datetime.now(UTC)
    assert exit_code_for(OperationResult("add", status, "", now, now)) == code
