from __future__ import annotations

import json
import math
import numbers
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

import pandas as pd

"""Cell value converters for spreadsheet uploads.

Every converter is total: it never raises, whatever the cell holds.
Unparseable input falls back to the declared default so that a single bad
cell cannot abort the batch.

Canonical forms follow the stored representation used by the admin UI:
numbers stringify without a trailing ".0", booleans as "true"/"false",
dates as UTC ISO-8601 with millisecond precision ("...T10:30:00.000Z").
"""

__all__ = [
    "ValidationResult",
    "to_string",
    "to_number",
    "to_boolean",
    "to_string_array",
    "to_date_string",
    "format_timestamp",
    "utc_now_iso",
    "validate_required_field",
    "is_blank",
]

TRUTHY_STRINGS = frozenset({"true", "1", "yes"})


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


def is_blank(value: Any) -> bool:
    """None or empty string. 0 / False are present values."""
    return value is None or (isinstance(value, str) and value == "")


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def to_string(value: Any, default: str = "") -> str:
    """Convert a cell to its canonical string form.

    >>> to_string(12.0)
    '12'
    >>> to_string(True)
    'true'
    >>> to_string(None, "n/a")
    'n/a'
    """
    if is_blank(value):
        return default
    try:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return _format_number(value)
        if isinstance(value, (list, tuple)):
            return ",".join(to_string(item) for item in value)
        if isinstance(value, dict):
            return json.dumps(value, ensure_ascii=False, default=str)
        if isinstance(value, (datetime, date)):
            return to_date_string(value, use_now_if_invalid=False)
        return str(value)
    except Exception:
        return default


def _normalize_number(number: float, default: int | float) -> int | float:
    if math.isnan(number) or math.isinf(number):
        return default
    if number.is_integer():
        return int(number)
    return number


def to_number(value: Any, default: int | float = 0) -> int | float:
    """Convert a cell to int/float.

    Numeric strings parse (surrounding whitespace allowed). Non-numeric,
    empty, None, NaN and infinite input return ``default``.
    """
    if is_blank(value):
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _normalize_number(value, default)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return _normalize_number(float(text), default)
        except (ValueError, OverflowError):
            return default
    if isinstance(value, numbers.Number):
        try:
            return _normalize_number(float(value), default)
        except (TypeError, ValueError, OverflowError):
            return default
    return default


def to_boolean(value: Any, default: bool = False) -> bool:
    """Convert a cell to bool.

    Strings are trimmed and compared case-insensitively against
    {"true", "1", "yes"}; any other string is False. Numbers are truthy when
    nonzero.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return default
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    if isinstance(value, numbers.Real):
        return to_boolean(float(value), default)
    return default


def to_string_array(value: Any, default: list[str] | None = None) -> list[str]:
    """Convert a cell to a list of strings.

    A JSON array string is parsed element-wise. JSON that parses to a
    non-array, or text that is not JSON at all, is wrapped as a single
    element holding the raw string.
    """
    if is_blank(value):
        return list(default) if default is not None else []
    if isinstance(value, (list, tuple)):
        return [to_string(item) for item in value]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except (ValueError, RecursionError):
            return [value]
        if isinstance(parsed, list):
            return [to_string(item) for item in parsed]
        return [value]
    return [to_string(value)]


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return format_timestamp(datetime.now(UTC))


def _parse_date(value: Any) -> datetime | None:
    try:
        if value is pd.NaT:
            return None
        if isinstance(value, bool):
            return None
        if isinstance(value, pd.Timestamp):
            ts = value
        elif isinstance(value, datetime):
            return value
        elif isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=UTC)
        elif isinstance(value, (int, float)):
            # epoch milliseconds
            ts = pd.to_datetime(value, unit="ms", utc=True)
        elif isinstance(value, str):
            ts = pd.to_datetime(value.strip(), utc=True)
        else:
            return None
        if pd.isna(ts):
            return None
        return ts.to_pydatetime()
    except (ValueError, TypeError, OverflowError, pd.errors.OutOfBoundsDatetime):
        return None


def to_date_string(value: Any, use_now_if_invalid: bool = True) -> str:
    """Convert a date-like cell to an ISO-8601 UTC string.

    Empty input yields the current time when ``use_now_if_invalid`` is set,
    otherwise "". Unparseable input yields the current time when
    ``use_now_if_invalid`` is set, otherwise the raw value as a string.
    """
    if is_blank(value):
        return utc_now_iso() if use_now_if_invalid else ""
    parsed = _parse_date(value)
    if parsed is not None:
        try:
            return format_timestamp(parsed)
        except (ValueError, OverflowError):
            pass
    if use_now_if_invalid:
        return utc_now_iso()
    try:
        return str(value)
    except Exception:
        return ""


def validate_required_field(value: Any, field_name: str) -> ValidationResult:
    """Required-field check. 0 and False count as present."""
    if is_blank(value):
        return ValidationResult(valid=False, error=f"Missing {field_name}")
    return ValidationResult(valid=True)
