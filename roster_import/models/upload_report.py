from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Upload report models.

UploadReport is the single output of an upload. Structural failures carry
success=False and one message; partial failures carry success=True with the
per-row messages in ``errors``. Callers must read ``errors`` together with
the counters to detect partial failure.

``Row {n}`` in ``errors`` is the spreadsheet row as shown in Excel: the
header is row 1 and blank rows still count. Older tooling numbered only the
non-blank data rows, so its numbers drift after a blank row.
"""

__all__ = [
    "UploadStage",
    "UploadReport",
]


class UploadStage(Enum):
    """Upload state machine.

    VALIDATE_HEADERS -> EXTRACT_ROWS -> BUILD_RECORDS -> BATCH_READ
    -> FINALIZE_RECORDS -> BATCH_WRITE -> ASSEMBLE_REPORT
    """
    VALIDATE_HEADERS = "validate_headers"
    EXTRACT_ROWS = "extract_rows"
    BUILD_RECORDS = "build_records"
    BATCH_READ = "batch_read"
    FINALIZE_RECORDS = "finalize_records"
    BATCH_WRITE = "batch_write"
    ASSEMBLE_REPORT = "assemble_report"


@dataclass
class UploadReport:
    success: bool
    message: str
    processed: int = 0  # rows that passed the first pass
    inserted: int = 0
    updated: int = 0  # includes unchanged rows (no write issued)
    errors: list[str] = field(default_factory=list)

    @classmethod
    def structural_failure(cls, message: str) -> UploadReport:
        return cls(success=False, message=message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "processed": self.processed,
            "inserted": self.inserted,
            "updated": self.updated,
            "errors": list(self.errors),
        }
