from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from sheetsync.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from sheetsync.db.connection import SyncLockedError, advisory_lock, db_connection
from sheetsync.db.repository import PersistenceError, PostgresRepository
from sheetsync.logging.error_log import ErrorLogBuffer
from sheetsync.logging.init import log_summary, set_debug, setup_logging
from sheetsync.models.config_models import SyncConfig
from sheetsync.services.orchestrator import SyncAbortedError, SyncOrchestrator, SyncStrategy
from sheetsync.services.summary import render_summary_lines
from sheetsync.sheets.normalizer import normalize_rows
from sheetsync.sources.a1 import bounded_range
from sheetsync.sources.base import SourceFetchError, SourceGateway
from sheetsync.sources.google_sheets import GoogleSheetsSource, load_service_account_info
from sheetsync.sources.workbook import WorkbookSource

"""CLI entrypoint.

Flow:
- Load ``.env`` (overrides the process environment) and the YAML config
- Build the source gateway (Google Sheets or a local workbook)
- Open the database, take the advisory lock, run the chosen strategy
- Print SUMMARY lines and map the outcome to an exit code

Exit codes: 0 success (including "no changes detected"), 1 fatal before or
instead of syncing, 2 at least one kind stopped on a persistence error.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

SCHEMA_SQL = Path(__file__).resolve().parents[1] / "db" / "schema.sql"

INSPECT_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True lets .env values win over variables already set in the
    shell, so the database and spreadsheet settings in .env always apply.
    """
    if not path.exists():
        return
    try:
        load_dotenv(dotenv_path=path, override=override)
    except OSError as e:
        logging.getLogger(__name__).warning("failed to load .env: %s", e)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheetsync", description="Google Sheets -> PostgreSQL sync")
    p.add_argument(
        "strategy",
        nargs="?",
        choices=[s.value for s in SyncStrategy],
        help="Sync strategy (default: config 'strategy', then probe)",
    )
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to the YAML config")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--dry-run", action="store_true", help="Compute and report the diff without writing")
    p.add_argument("--inspect-data", action="store_true", help="Print the first normalized rows per kind then exit")
    p.add_argument("--check-connection", action="store_true", help="Connect to the database, print table counts then exit")
    p.add_argument("--print-schema", action="store_true", help="Print the table DDL then exit")
    return p.parse_args(argv)


def resolve_spreadsheet_ids(cfg: SyncConfig) -> dict[str, str]:
    """Sheet name -> spreadsheet id; ``spreadsheet_id_env`` wins over ``spreadsheet_id``."""
    ids: dict[str, str] = {}
    for kind in cfg.kinds:
        sid = os.getenv(kind.spreadsheet_id_env) if kind.spreadsheet_id_env else None
        sid = sid or kind.spreadsheet_id
        if sid:
            ids[kind.sheet] = sid
    return ids


def build_source(cfg: SyncConfig) -> SourceGateway:
    src = cfg.source
    if src.type == "workbook":
        return WorkbookSource(src.workbook_path)
    info = load_service_account_info(src.credentials_env, src.credentials_file)
    return GoogleSheetsSource(
        resolve_spreadsheet_ids(cfg),
        info,
        timeout=cfg.timeouts.source_seconds,
        value_render=src.value_render,
    )


def _inspect_data(cfg: SyncConfig, source: SourceGateway) -> int:
    for kind in cfg.kinds:
        schema = kind.schema
        print(f"KIND: {schema.kind} sheet={schema.sheet} range={schema.cell_range} table={schema.table}")
        try:
            rows = source.fetch_range(schema.sheet, bounded_range(schema.cell_range, INSPECT_ROWS))
        except SourceFetchError as e:
            print(f"  fetch_error: {e}")
            return EXIT_FATAL
        batch = normalize_rows(rows, schema)
        print(f"  columns={schema.field_names}")
        for record in batch.records:
            safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in record.values.items()}
            print(f"  row={record.row_number} hash={record.row_hash} values={safe}")
        for rejection in batch.rejections:
            print(f"  row={rejection.row_number} rejected={rejection.reason.value} {rejection.message}")
    return EXIT_SUCCESS


def _check_connection(cfg: SyncConfig, logger: logging.Logger) -> int:
    try:
        with db_connection(cfg.database, cfg.timeouts.database_seconds) as conn:
            repo = PostgresRepository(conn)
            for kind in cfg.kinds:
                logger.info(f"table={kind.table} rows={repo.count(kind.schema)}")
    except (psycopg2.Error, PersistenceError) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    logger.info("connection ok")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # Only read sys.argv when no list is given (an empty list means "no args")
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    if args.print_schema:
        print(SCHEMA_SQL.read_text(encoding="utf-8"))
        return EXIT_SUCCESS

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.check_connection:
        return _check_connection(cfg, logger)

    try:
        source = build_source(cfg)
    except SourceFetchError as e:
        logger.error(f"source: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg, source)

    strategy = SyncStrategy.parse(args.strategy or cfg.strategy)
    try:
        with db_connection(cfg.database, cfg.timeouts.database_seconds) as conn:
            with advisory_lock(conn):
                orchestrator = SyncOrchestrator(
                    source,
                    PostgresRepository(conn),
                    cfg.kinds,
                    probe_window=cfg.probe_window,
                    error_log=ErrorLogBuffer(),
                    dry_run=args.dry_run,
                )
                result = orchestrator.run(strategy)
    except SyncAbortedError as e:
        logger.error(f"sync aborted: {e}")
        return EXIT_FATAL
    except SyncLockedError as e:
        logger.error(f"lock: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    for line in render_summary_lines(result):
        # log_summary adds the "SUMMARY " label itself
        log_summary(line.removeprefix("SUMMARY "))

    if result.failed:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
