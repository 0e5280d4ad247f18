from __future__ import annotations

import numbers
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlsplit

from ..excel.converters import (
    is_blank,
    to_boolean,
    to_date_string,
    to_number,
    to_string,
    to_string_array,
    validate_required_field,
)
from ..models.row_data import RowData, RowError, RowOutcome
from ..models.schema import EntityKind, EntitySchema, FieldType

"""Record builder: turns mapped spreadsheet rows into persist-ready records.

Two passes:

1. build_row()    convert every schema field, validate the primary key and
                  required fields, reject duplicate keys within the upload.
2. finalize_row() once the stored record (if any) is known: stamp a new
                  record, or merge the upload into the stored one with
                  merge_for_update(), then run cross-field checks.

Neither pass raises for bad data; problems come back as RowError so a single
row never aborts the batch.
"""

__all__ = [
    "CONVERTERS",
    "build_row",
    "finalize_row",
    "merge_for_update",
    "check_scratch_api",
]

CONVERTERS: dict[FieldType, Callable[[Any], Any]] = {
    FieldType.STRING: to_string,
    FieldType.NUMBER: to_number,
    FieldType.BOOLEAN: to_boolean,
    FieldType.STRING_ARRAY: to_string_array,
    # 空/不正は "" または元の文字列 (now 補完は finalize 側で行う)
    FieldType.DATE: lambda v: to_date_string(v, use_now_if_invalid=False),
}

MISSING_FIELD = "MISSING_FIELD"
DUPLICATE_KEY = "DUPLICATE_KEY"
SCRATCH_API_MISMATCH = "SCRATCH_API_MISMATCH"


def build_row(
    schema: EntitySchema,
    row_number: int,
    mapped: Mapping[str, Any],
    seen_keys: dict[str, int],
) -> RowData | RowError:
    """First pass: convert + validate one mapped row.

    ``seen_keys`` (key -> first row number) is updated in place when the row
    is accepted.
    """
    key_check = validate_required_field(mapped.get(schema.key_field), schema.key_field)
    if not key_check.valid:
        return RowError(row_number, MISSING_FIELD, key_check.error or f"Missing {schema.key_field}")

    for name, spec in schema.fields.items():
        if spec.required and name != schema.key_field:
            check = validate_required_field(mapped.get(name), name)
            if not check.valid:
                return RowError(row_number, MISSING_FIELD, check.error or f"Missing {name}")

    key = to_string(mapped[schema.key_field])
    if key in seen_keys:
        return RowError(
            row_number,
            DUPLICATE_KEY,
            f"Duplicate {schema.key_field} '{key}' (first seen in row {seen_keys[key]})",
        )

    values: dict[str, Any] = {}
    present: set[str] = set()
    for name, spec in schema.fields.items():
        raw = mapped.get(name)
        if not is_blank(raw):
            present.add(name)
        values[name] = CONVERTERS[spec.type](raw)
    values[schema.key_field] = key

    seen_keys[key] = row_number
    return RowData(
        row_number=row_number,
        key=key,
        values=values,
        present_fields=frozenset(present),
    )


def _same_value(stored: Any, incoming: Any) -> bool:
    if isinstance(stored, bool) or isinstance(incoming, bool):
        return type(stored) is type(incoming) and stored == incoming
    if isinstance(stored, numbers.Number) and isinstance(incoming, numbers.Number):
        return float(stored) == float(incoming)
    if isinstance(stored, (list, tuple)) and isinstance(incoming, (list, tuple)):
        return list(stored) == list(incoming)
    return stored == incoming


def merge_for_update(
    schema: EntitySchema,
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    now: str,
) -> tuple[dict[str, Any], bool]:
    """Merge an uploaded row into the stored record.

    Only ``schema.business_fields`` are taken from ``incoming``. The primary
    key, server-owned fields (e.g. accumulated_click), created_at and any
    attribute the upload does not own are carried over from ``existing``
    verbatim. updated_at / last_update advance to ``now`` only when a
    business field actually changed.

    Returns:
        (merged record, changed flag)
    """
    merged = dict(existing)
    changed = False
    for name in schema.business_fields:
        if name not in incoming:
            continue
        new_value = incoming[name]
        if name not in existing or not _same_value(existing[name], new_value):
            changed = True
        merged[name] = new_value
    if changed:
        merged["updated_at"] = now
        merged["last_update"] = now
    return merged, changed


def check_scratch_api(record: Mapping[str, Any]) -> str | None:
    """Games: the last path segment of scratch_api must equal game_id."""
    url = record.get("scratch_api") or ""
    if not url:
        return None
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    if segment != record.get("game_id"):
        return (
            f"scratch_api '{url}' does not match game_id '{record.get('game_id')}' "
            f"(trailing segment is '{segment}')"
        )
    return None


ROW_CHECKS: dict[EntityKind, list[tuple[str, Callable[[Mapping[str, Any]], str | None]]]] = {
    EntityKind.GAMES: [(SCRATCH_API_MISMATCH, check_scratch_api)],
}


def _new_record(schema: EntitySchema, row: RowData, now: str) -> dict[str, Any]:
    record = dict(row.values)
    for name, spec in schema.fields.items():
        if spec.default_now and record.get(name) in ("", None):
            record[name] = now
        # server-owned counters: upload value if given, otherwise 0
        if spec.server_owned and spec.type is FieldType.NUMBER and name not in row.present_fields:
            record[name] = 0
    record["created_at"] = now
    record["updated_at"] = now
    record["last_update"] = now
    return record


def finalize_row(
    schema: EntitySchema,
    row: RowData,
    existing: Mapping[str, Any] | None,
    now: str,
) -> RowOutcome | RowError:
    """Second pass: create or update, then cross-field checks."""
    if existing is None:
        record = _new_record(schema, row, now)
        outcome = RowOutcome(row=row, record=record, created=True, changed=True)
    else:
        incoming = dict(row.values)
        for name, spec in schema.fields.items():
            if spec.default_now and incoming.get(name) in ("", None):
                # 空欄は既存値を維持 (無い場合のみ now)
                incoming[name] = existing.get(name) or now
        record, changed = merge_for_update(schema, existing, incoming, now)
        outcome = RowOutcome(row=row, record=record, created=False, changed=changed)

    for error_type, check in ROW_CHECKS.get(schema.kind, []):
        message = check(outcome.record)
        if message:
            return RowError(row.row_number, error_type, message)
    return outcome
