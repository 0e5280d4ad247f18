from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

from botocore.exceptions import BotoCoreError
from dotenv import load_dotenv

from roster_import.config.loader import ConfigError, load_config
from roster_import.excel.reader import UploadFileError, map_row_to_object, read_upload
from roster_import.logging.error_log import ErrorLogBuffer
from roster_import.logging.init import log_summary, set_debug, setup_logging
from roster_import.models.schema import EntityKind, get_schema
from roster_import.services.orchestrator import process_upload
from roster_import.services.summary import render_summary_line
from roster_import.store.dynamodb import DynamoDBStore
from roster_import.store.gateway import BatchStoreGateway
from roster_import.store.memory import InMemoryStore

"""CLI entrypoint.

    python -m roster_import.cli --kind games games.xlsx
    python -m roster_import.cli --kind students students.csv --store memory
    python -m roster_import.cli --kind teachers teachers.xlsx --inspect-data

Exit codes:
    0  every row was written (or was an unchanged update)
    2  partial failure: at least one row error
    1  structural failure or fatal configuration / connection error
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so table names / AWS settings can live next to the data."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Spreadsheet -> DynamoDB bulk upsert")
    p.add_argument("file", type=Path, help="Upload file (.xlsx / .xls / .csv)")
    p.add_argument(
        "--kind", required=True, choices=[k.value for k in EntityKind], help="Entity kind of the sheet"
    )
    p.add_argument("--config", type=Path, default=None, help="Optional YAML config file")
    p.add_argument(
        "--store",
        choices=["dynamodb", "memory"],
        default="dynamodb",
        help="memory = validate and reconcile against an empty in-memory store (dry run)",
    )
    p.add_argument("--json", action="store_true", help="Print the upload report as JSON")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    return p.parse_args(argv)


def _inspect_data(path: Path, kind: str) -> int:
    schema = get_schema(kind)
    try:
        sheet = read_upload(path.read_bytes(), path.name)
    except UploadFileError as e:
        print(f"inspect: read_error: {e}")
        return EXIT_FATAL
    headers = [schema.canonical_header(h) for h in sheet.headers]
    print(f"FILE: {path.name} kind={schema.kind.value} rows={len(sheet.rows)}")
    print(f"  headers={headers}")
    missing = sorted(schema.required_headers - set(headers))
    if missing:
        print(f"  missing_required={missing}")
    unexpected = [h for h in headers if h and h not in schema.expected_headers]
    if unexpected:
        print(f"  unexpected={unexpected}")
    for row_number, cells in sheet.rows[:3]:
        print(f"  row {row_number}: {map_row_to_object(headers, cells)}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで [] を渡すケース)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    path: Path = args.file
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(path, args.kind)

    if args.store == "memory":
        client = InMemoryStore()
    else:
        try:
            client = DynamoDBStore.from_config(cfg)
        except BotoCoreError as e:
            logger.error(f"dynamodb: {e}")
            return EXIT_FATAL
    gateway = BatchStoreGateway.from_config(client, cfg)

    logger.info(f"Uploading {path.name} kind={args.kind} store={args.store}")
    error_log = ErrorLogBuffer()
    started = time.perf_counter()
    report = process_upload(
        args.kind, path.read_bytes(), gateway, filename=path.name, config=cfg, error_log=error_log
    )
    elapsed = time.perf_counter() - started

    for line in report.errors:
        logger.warning(line)
    log_path = error_log.flush()
    if log_path is not None:
        breakdown = ", ".join(f"{name}={n}" for name, n in sorted(error_log.counts.items()))
        logger.info(f"error log written: {log_path} ({breakdown})")
    logger.info(report.message)
    if args.json:
        print(json.dumps(report.to_dict(), ensure_ascii=False))

    summary_line = render_summary_line(args.kind, report, elapsed)
    log_summary(summary_line[len("SUMMARY "):])

    if not report.success:
        return EXIT_FATAL
    if report.errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
