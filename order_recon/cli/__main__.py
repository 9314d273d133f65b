from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from order_recon.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from order_recon.db.store import ReconciliationStore, StoreError
from order_recon.logging.init import log_summary, setup_logging
from order_recon.models.config_models import ReconConfig
from order_recon.models.processing_result import OperationResult, OperationStatus
from order_recon.services import orchestrator
from order_recon.services.summary import render_summary_line

"""CLI entrypoint.

Sub-commands:
    add FILE              validate an upload and commit it when clean
    asof-check FILE       as-of consistency check of a snapshot (read only)
    true-duplicates       scan the store for identities with several batches
    edit ORDER --set C=V  update fields of every record of an order
    delete ORDER          delete every record of an order
    check-db              connectivity check

Connection settings: `.env` (loaded in override mode) > process environment >
`database` section of the config file.
"""

EXIT_SUCCESS = 0
EXIT_REJECTED = 2
EXIT_FATAL = 1

_REJECTED_STATUSES = {
    OperationStatus.MALFORMED,
    OperationStatus.INVALID_ROWS,
    OperationStatus.DUPLICATES,
    OperationStatus.NOT_FOUND,
}


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _open_store(cfg: ReconConfig) -> ReconciliationStore:
    return ReconciliationStore.from_config(cfg.database, default_timeout=cfg.statement_timeout_seconds)


def _parse_assignments(pairs: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise argparse.ArgumentTypeError(f"expected COLUMN=VALUE, got {pair!r}")
        fields[name.strip()] = value
    return fields


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="order-recon", description="Order reconciliation import & duplicate detection")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--timeout", type=float, default=None, help="Per-statement timeout in seconds")
    sub = p.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Validate and insert an upload")
    add.add_argument("file", type=Path)
    add.add_argument("--user", default=None, help="Recorded as USER_SAP")

    asof = sub.add_parser("asof-check", help="Flag rows whose batch number disagrees with the store")
    asof.add_argument("file", type=Path)

    true_dup = sub.add_parser("true-duplicates", help="Scan the store for conflicting batch numbers")
    true_dup.add_argument("--export", action="store_true", help="Write true_duplicates.csv")

    edit = sub.add_parser("edit", help="Update fields of an order")
    edit.add_argument("order_number")
    edit.add_argument("--set", dest="assignments", action="append", default=[], metavar="COLUMN=VALUE")

    delete = sub.add_parser("delete", help="Delete an order")
    delete.add_argument("order_number")

    sub.add_parser("check-db", help="Check database connectivity")
    return p.parse_args(argv)


def _run(args: argparse.Namespace, cfg: ReconConfig, store: ReconciliationStore) -> OperationResult:
    if args.command == "add":
        return orchestrator.add_reconciliation(args.file, store, cfg, username=args.user, timeout=args.timeout)
    if args.command == "asof-check":
        return orchestrator.check_as_of_upload(args.file, store, cfg, timeout=args.timeout)
    if args.command == "true-duplicates":
        return orchestrator.find_true_duplicate_groups(store, cfg, export=args.export, timeout=args.timeout)
    if args.command == "edit":
        fields = _parse_assignments(args.assignments)
        return orchestrator.edit_reconciliation(args.order_number, fields, store, cfg, timeout=args.timeout)
    if args.command == "delete":
        return orchestrator.delete_reconciliation(args.order_number, store, cfg, timeout=args.timeout)
    return orchestrator.check_store(store, cfg, timeout=args.timeout)


def exit_code_for(result: OperationResult) -> int:
    if result.status == OperationStatus.SUCCESS:
        return EXIT_SUCCESS
    if result.status in _REJECTED_STATUSES:
        return EXIT_REJECTED
    return EXIT_FATAL


def main(argv: list[str] | None = None) -> int:
    # Only read sys.argv when argv is None; an explicit [] must not pick up pytest args
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        with _open_store(cfg) as store:
            result = _run(args, cfg, store)
    except argparse.ArgumentTypeError as e:
        logger.error(f"arguments: {e}")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    if result.ok:
        logger.info(result.message)
    else:
        logger.error(result.message)
    for report in (result.duplicates, result.in_batch_duplicates):
        if report is not None and report.export_path is not None:
            logger.info(f"report: {report.export_path}")

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])
    return exit_code_for(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
