from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the order reconciliation engine.

Instances are built by order_recon/config/loader.py after YAML parsing and
schema validation; defaults here are the values applied when a key is omitted.
"""

COMMIT_MODE_ROW = "row"
COMMIT_MODE_BATCH = "batch"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    table: str = "reconciliation"
    pool_min: int = 1
    pool_max: int = 10


@dataclass(frozen=True)
class AsOfColumns:
    """Upload header names read by the as-of check.

    The as-of upload uses different headers from the add flow
    ("Order ID"/"Material" instead of ORDERNUMBER/MATERIAL_NUMBER).
    """
    order_number: str = "Order ID"
    material_number: str = "Material"
    batch_number: str = "BATCHNUMBER"


@dataclass(frozen=True)
class ReconConfig:
    """Root configuration object."""
    exports_directory: str = "./exports"
    uploads_directory: str = "./uploads"
    logs_directory: str = "./logs"
    default_user: str = "unknown"
    commit_mode: str = COMMIT_MODE_ROW  # row | batch
    check_in_batch_duplicates: bool = False
    statement_timeout_seconds: float | None = None
    as_of_columns: AsOfColumns = field(default_factory=AsOfColumns)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
