from __future__ import annotations

from pathlib import Path

import pytest

from order_recon.config.loader import ConfigError, load_config
from order_recon.models.config_models import AsOfColumns, ReconConfig


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.exports_directory == "./exports"
    assert cfg.default_user == "tester"
    assert cfg.commit_mode == "row"
    assert cfg.statement_timeout_seconds == 5
    assert cfg.database.user == "appuser"
    assert cfg.database.table == "reconciliation"
    assert cfg.database.pool_max == 10
    assert cfg.as_of_columns == AsOfColumns()


def test_load_config_missing(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "missing.yml")


def test_empty_file_gives_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "recon.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == ReconConfig()


def test_invalid_yaml(temp_workdir: Path):
    path = temp_workdir / "config" / "recon.yml"
    path.write_text("commit_mode: [row\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(path)


def test_root_must_be_mapping(temp_workdir: Path):
    path = temp_workdir / "config" / "recon.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(path)


@pytest.mark.parametrize(
    "body",
    [
        "commit_mode: bulk\n",
        "unknown_key: 1\n",
        "check_in_batch_duplicates: 'yes'\n",
        "statement_timeout_seconds: 0\n",
        "database:\n  table: 'drop table;'\n",
        "as_of_columns:\n  order_id: X\n",
    ],
)
def test_schema_violations(temp_workdir: Path, body: str):
    path = temp_workdir / "config" / "recon.yml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(path)


def test_batch_mode_and_hardening_switch(temp_workdir: Path):
    path = temp_workdir / "config" / "recon.yml"
    path.write_text(
        "commit_mode: batch\ncheck_in_batch_duplicates: true\n"
        "as_of_columns:\n  order_number: ORDER\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.commit_mode == "batch"
    assert cfg.check_in_batch_duplicates is True
    assert cfg.as_of_columns.order_number == "ORDER"
    assert cfg.as_of_columns.material_number == "Material"


def test_pool_bounds_checked(temp_workdir: Path):
    path = temp_workdir / "config" / "recon.yml"
    path.write_text("database:\n  pool_min: 5\n  pool_max: 2\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="pool_min"):
        load_config(path)


def test_shipped_example_config_is_valid():
    example = Path(__file__).resolve().parents[2] / "config" / "recon.yml"
    cfg = load_config(example)
    assert cfg.as_of_columns == AsOfColumns()
    assert cfg.commit_mode == "row"
