from __future__ import annotations

import logging
import shutil
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

"""Upload staging.

An upload is copied into the uploads directory under a unique name before it
is parsed, and the staged copy is removed when the operation ends, whatever
the outcome (success, rejection, or exception). The caller's original file is
never touched.
"""

logger = logging.getLogger(__name__)


@contextmanager
def staged_upload(source: Path, uploads_dir: Path) -> Iterator[Path]:
    if not source.is_file():
        raise FileNotFoundError(f"upload not found: {source}")
    uploads_dir.mkdir(parents=True, exist_ok=True)
    staged = uploads_dir / f"{uuid.uuid4().hex}{source.suffix.lower()}"
    shutil.copyfile(source, staged)
    logger.debug("staged upload %s -> %s", source.name, staged)
    try:
        yield staged
    finally:
        try:
            staged.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("failed to remove staged upload %s: %s", staged, e)
