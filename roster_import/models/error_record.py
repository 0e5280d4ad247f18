from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .row_data import RowError

"""Error log line model.

Mirrors every report error (row level and structural) as one JSON object:
timestamp, file, entity, row, error_type, message. Structural errors have no
offending row and use FILE_LEVEL_ROW.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
]

FILE_LEVEL_ROW = -1


def _utc_stamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: str  # ISO8601 UTC, Z suffix
    file: str  # upload file name, "<upload>" when unknown
    entity: str  # students / teachers / games
    row: int  # spreadsheet row, FILE_LEVEL_ROW for structural errors
    error_type: str  # UPPER_SNAKE
    message: str  # same text as the report entry (without the "Row n:" prefix)

    @classmethod
    def for_row(cls, error: RowError, *, file: str, entity: str) -> ErrorRecord:
        return cls(_utc_stamp(), file, entity, error.row_number, error.error_type, error.message)

    @classmethod
    def for_file(cls, message: str, *, file: str, entity: str, error_type: str = "STRUCTURAL") -> ErrorRecord:
        return cls(_utc_stamp(), file, entity, FILE_LEVEL_ROW, error_type, message)

    def to_json_line(self) -> str:
        # asdict keeps the key set fixed to the dataclass fields
        return json.dumps(asdict(self), ensure_ascii=False)
