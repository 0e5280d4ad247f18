from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from typing import Any

from ..config.loader import UploadConfig
from ..excel.converters import utc_now_iso
from ..excel.reader import (
    MissingHeadersError,
    UploadFileError,
    check_headers,
    map_row_to_object,
    read_upload,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.row_data import RowData, RowError
from ..models.schema import EntityKind, EntitySchema, get_schema
from ..models.upload_report import UploadReport, UploadStage
from ..store.gateway import BatchStoreGateway
from .progress import ProgressTracker
from .reconciler import lookup_existing, route_rows
from .record_builder import build_row

"""Upload orchestration.

Sequences one upload through the stages of UploadStage:

    VALIDATE_HEADERS -> EXTRACT_ROWS -> BUILD_RECORDS -> BATCH_READ
    -> FINALIZE_RECORDS -> BATCH_WRITE -> ASSEMBLE_REPORT

Structural failures (unreadable file, missing required header, empty data,
too many rows) stop before the first store call and produce a single
top-level error. Row failures (validation, cross-field checks, reads or
writes exhausted after retries) are collected as ``Row {n}: {message}``
while the rest of the batch proceeds.
"""

__all__ = [
    "process_upload",
    "handle_upload_request",
]

logger = logging.getLogger(__name__)

WRITE_FAILED = "WRITE_FAILED"
STRUCTURAL = "STRUCTURAL"
UNKNOWN_FILE = "<upload>"


class _UploadRun:
    """Mutable state of a single upload (one per process_upload call)."""

    def __init__(
        self,
        schema: EntitySchema,
        file_label: str,
        error_log: ErrorLogBuffer | None,
    ) -> None:
        self.schema = schema
        self.file_label = file_label
        self.error_log = error_log
        self.row_errors: list[RowError] = []
        self.stage = UploadStage.VALIDATE_HEADERS

    def enter(self, stage: UploadStage) -> None:
        self.stage = stage
        logger.debug("upload kind=%s stage=%s", self.schema.kind.value, stage.value)

    def row_error(self, error: RowError) -> None:
        self.row_errors.append(error)
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.for_row(error, file=self.file_label, entity=self.schema.kind.value)
            )

    def structural(self, message: str) -> UploadReport:
        logger.error("upload rejected kind=%s stage=%s: %s", self.schema.kind.value, self.stage.value, message)
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.for_file(
                    message, file=self.file_label, entity=self.schema.kind.value, error_type=STRUCTURAL
                )
            )
        return UploadReport.structural_failure(message)


def process_upload(
    kind: str | EntityKind,
    payload: bytes,
    gateway: BatchStoreGateway,
    *,
    filename: str | None = None,
    config: UploadConfig | None = None,
    now: str | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> UploadReport:
    """Upsert every row of an uploaded worksheet.

    Args:
        kind: Entity kind (students / teachers / games)
        payload: Raw file bytes (xlsx / xls / csv)
        gateway: Batch store gateway (chunking + retries)
        filename: Original file name, used for format detection and logs
        config: Upload limits; defaults to UploadConfig()
        now: Timestamp stamped on created/changed records (defaults to current UTC)
        error_log: Optional JSON Lines buffer mirroring every error

    Returns:
        UploadReport. success=False only for structural failures.
    """
    schema = get_schema(kind)
    cfg = config or UploadConfig()
    run = _UploadRun(schema, filename or UNKNOWN_FILE, error_log)

    # --- structural checks (no store access) ---------------------------
    run.enter(UploadStage.VALIDATE_HEADERS)
    try:
        sheet = read_upload(payload, filename)
    except UploadFileError as e:
        return run.structural(str(e))
    headers = [schema.canonical_header(h) for h in sheet.headers]
    try:
        unexpected = check_headers(headers, schema.required_headers, schema.expected_headers)
    except MissingHeadersError as e:
        return run.structural(str(e))
    if unexpected:
        logger.warning("unexpected headers ignored kind=%s: %s", schema.kind.value, ", ".join(unexpected))

    run.enter(UploadStage.EXTRACT_ROWS)
    if not sheet.rows:
        return run.structural("File is empty or contains no data rows")
    if len(sheet.rows) > cfg.max_records:
        return run.structural(
            f"File contains {len(sheet.rows)} records. Maximum allowed is {cfg.max_records:,} records."
        )

    # --- pass 1: convert + validate -------------------------------------
    run.enter(UploadStage.BUILD_RECORDS)
    valid_rows: list[RowData] = []
    seen_keys: dict[str, int] = {}
    for row_number, cells in sheet.rows:
        built = build_row(schema, row_number, map_row_to_object(headers, cells), seen_keys)
        if isinstance(built, RowError):
            run.row_error(built)
        else:
            valid_rows.append(built)

    stamp = now or utc_now_iso()

    # --- batched read + pass 2 ------------------------------------------
    run.enter(UploadStage.BATCH_READ)
    lookup = lookup_existing(schema, valid_rows, gateway) if valid_rows else None

    run.enter(UploadStage.FINALIZE_RECORDS)
    inserted = 0
    updated = 0
    if lookup is not None:
        routed = route_rows(schema, valid_rows, lookup, stamp)
        for error in routed.errors:
            run.row_error(error)

        # --- batched write --------------------------------------------------
        run.enter(UploadStage.BATCH_WRITE)
        to_write = routed.to_write
        records = [o.record for o in to_write]
        write_keys = {o.row.key for o in to_write}
        with ProgressTracker(
            gateway.write_chunk_count(len(records)), description=f"Writing {schema.kind.value}"
        ) as progress:
            written = gateway.batch_write(schema.kind, records, on_chunk=progress.chunk_done)

        for outcome in routed.outcomes:
            if outcome.row.key in write_keys and outcome.row.key in written.failed:
                run.row_error(RowError(outcome.row.row_number, WRITE_FAILED, written.failed[outcome.row.key]))
            elif outcome.created:
                inserted += 1
            else:
                updated += 1

    # --- report ---------------------------------------------------------
    run.enter(UploadStage.ASSEMBLE_REPORT)
    processed = len(valid_rows)
    errors = [str(e) for e in sorted(run.row_errors, key=lambda e: e.row_number)]
    message = (
        f"Successfully processed {processed} {schema.kind.value} "
        f"({inserted} inserted, {updated} updated)"
    )
    if errors:
        message += f"; {len(errors)} rows failed"
    logger.info(
        "upload done kind=%s processed=%d inserted=%d updated=%d errors=%d",
        schema.kind.value, processed, inserted, updated, len(errors),
    )
    return UploadReport(
        success=True,
        message=message,
        processed=processed,
        inserted=inserted,
        updated=updated,
        errors=errors,
    )


def handle_upload_request(
    kind: str | EntityKind,
    body: str | bytes | Mapping[str, Any] | None,
    gateway: BatchStoreGateway,
    *,
    config: UploadConfig | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> UploadReport:
    """Decode a ``{"file": "<base64>", "filename": "..."}`` request body and upload it."""
    run = _UploadRun(get_schema(kind), UNKNOWN_FILE, error_log)
    if body is None or body == "" or body == b"":
        data: Mapping[str, Any] = {}
    elif isinstance(body, Mapping):
        data = body
    else:
        try:
            data = json.loads(body)
        except ValueError:
            return run.structural("Invalid request body")
        if not isinstance(data, Mapping):
            return run.structural("Invalid request body")

    encoded = data.get("file")
    if not encoded:
        return run.structural("No file uploaded")
    try:
        payload = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError):
        return run.structural("Uploaded file is not valid base64")

    filename = data.get("filename")
    return process_upload(
        kind,
        payload,
        gateway,
        filename=filename if isinstance(filename, str) else None,
        config=config,
        error_log=error_log,
    )
