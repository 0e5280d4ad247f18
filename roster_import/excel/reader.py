from __future__ import annotations

import csv
import io
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import PurePath
from typing import Any, Union

import numpy as np
import pandas as pd

from .converters import format_timestamp

"""Spreadsheet reader and row mapper.

The first worksheet is read raw (no header inference) with pandas; row 1 is
the header row and rows 2+ are data rows. Every cell is normalised at this
boundary into the closed CellValue variant so nothing untyped (NaN, numpy
scalars, Timestamps) reaches the record builder.

Supported payloads: xlsx (openpyxl), xls (xlrd), csv (UTF-8, BOM tolerated).
"""

__all__ = [
    "CellValue",
    "SheetData",
    "UploadFileError",
    "MissingHeadersError",
    "detect_format",
    "normalize_cell",
    "map_row_to_object",
    "read_upload",
    "check_headers",
]

CellValue = Union[str, int, float, bool, list, None]

XLSX_MAGIC = b"PK\x03\x04"
XLS_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
SUPPORTED_FORMATS = ("xlsx", "xls", "csv")


class UploadFileError(Exception):
    """Raised when the uploaded payload cannot be read as a worksheet."""


class MissingHeadersError(Exception):
    """Raised when required headers are absent from the header row."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required headers: {', '.join(missing)}")


@dataclass
class SheetData:
    headers: list[str]
    rows: list[tuple[int, list[CellValue]]]  # (spreadsheet row number, cells)


def normalize_cell(value: Any) -> CellValue:
    """Collapse a raw pandas cell into the CellValue variant."""
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    if value is pd.NaT:
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return format_timestamp(value.to_pydatetime() if isinstance(value, pd.Timestamp) else value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [normalize_cell(v) for v in value]
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return str(value)


def map_row_to_object(headers: list[Any], row: list[CellValue]) -> dict[str, CellValue]:
    """Zip the header row with one data row.

    Empty headers drop their column, cells beyond the header width are
    ignored, and headers beyond the row width map to None.
    """
    record: dict[str, CellValue] = {}
    for index, header in enumerate(headers):
        if header is None or header == "":
            continue
        record[str(header)] = row[index] if index < len(row) else None
    return record


def detect_format(payload: bytes, filename: str | None = None) -> str:
    if filename:
        suffix = PurePath(filename).suffix.lower().lstrip(".")
        if suffix in SUPPORTED_FORMATS:
            return suffix
        if suffix:
            raise UploadFileError(f"Unsupported file type: .{suffix}")
    if payload.startswith(XLSX_MAGIC):
        return "xlsx"
    if payload.startswith(XLS_MAGIC):
        return "xls"
    return "csv"


def _read_frame(payload: bytes, fmt: str) -> pd.DataFrame:
    buffer = io.BytesIO(payload)
    if fmt == "csv":
        try:
            text = payload.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise UploadFileError(f"Unable to read file: not valid UTF-8 CSV ({e})") from e
        # 列数は最も長い行に合わせる (ヘッダより長い行も読めるように)
        width = max((len(r) for r in csv.reader(io.StringIO(text))), default=0)
        if width == 0:
            raise UploadFileError("File is empty or contains no data rows")
        # keep_default_na=False: "NA" 等の文字列をそのまま保持
        return pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    engine = "openpyxl" if fmt == "xlsx" else "xlrd"
    return pd.read_excel(buffer, sheet_name=0, header=None, engine=engine)


def read_upload(payload: bytes, filename: str | None = None) -> SheetData:
    """Read the first worksheet of an upload into headers + data rows.

    Fully empty data rows are dropped; row numbers keep counting them so
    error messages point at the real spreadsheet row.
    """
    if not payload:
        raise UploadFileError("File is empty or contains no data rows")
    fmt = detect_format(payload, filename)
    try:
        df = _read_frame(payload, fmt)
    except UploadFileError:
        raise
    except pd.errors.EmptyDataError as e:
        raise UploadFileError("File is empty or contains no data rows") from e
    except Exception as e:
        raise UploadFileError(f"Unable to read {fmt} file: {e}") from e

    raw_rows = df.values.tolist()
    if not raw_rows:
        raise UploadFileError("File is empty or contains no data rows")

    headers = [_header_text(h) for h in raw_rows[0]]
    rows: list[tuple[int, list[CellValue]]] = []
    for offset, raw in enumerate(raw_rows[1:]):
        cells = [normalize_cell(v) for v in raw]
        if all(c is None for c in cells):
            continue
        rows.append((offset + 2, cells))
    return SheetData(headers=headers, rows=rows)


def _header_text(value: Any) -> str:
    cell = normalize_cell(value)
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell)


def check_headers(headers: list[str], required: set[str], expected: set[str]) -> list[str]:
    """Validate a header row.

    Raises MissingHeadersError for missing required headers; returns the
    list of unexpected headers (informational only).
    """
    present = {h for h in headers if h}
    missing = sorted(required - present)
    if missing:
        raise MissingHeadersError(missing)
    return [h for h in headers if h and h not in expected]
