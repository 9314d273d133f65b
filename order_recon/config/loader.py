from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    AsOfColumns,
    DatabaseConfig,
    ReconConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (config/recon.yml by default)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults for omitted keys
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/recon.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or not JSON, or the config data
            violates the schema (unknown keys, wrong types, bad enum values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_database(db_raw: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        table=db_raw.get("table", defaults.table),
        pool_min=db_raw.get("pool_min", defaults.pool_min),
        pool_max=db_raw.get("pool_max", defaults.pool_max),
    )
    if db.pool_min > db.pool_max:
        raise ConfigError(
            f"database.pool_min ({db.pool_min}) exceeds database.pool_max ({db.pool_max})"
        )
    return db


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ReconConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    defaults = ReconConfig()
    as_of_raw = data.get("as_of_columns", {})
    as_of_defaults = AsOfColumns()
    as_of = AsOfColumns(
        order_number=as_of_raw.get("order_number", as_of_defaults.order_number),
        material_number=as_of_raw.get("material_number", as_of_defaults.material_number),
        batch_number=as_of_raw.get("batch_number", as_of_defaults.batch_number),
    )
    return ReconConfig(
        exports_directory=data.get("exports_directory", defaults.exports_directory),
        uploads_directory=data.get("uploads_directory", defaults.uploads_directory),
        logs_directory=data.get("logs_directory", defaults.logs_directory),
        default_user=data.get("default_user", defaults.default_user),
        commit_mode=data.get("commit_mode", defaults.commit_mode),
        check_in_batch_duplicates=data.get(
            "check_in_batch_duplicates", defaults.check_in_batch_duplicates
        ),
        statement_timeout_seconds=data.get(
            "statement_timeout_seconds", defaults.statement_timeout_seconds
        ),
        as_of_columns=as_of,
        database=_build_database(data.get("database", {})),
    )

