from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Row level models for the upload engine.

RowData is a row that passed the first (convert + validate) pass; RowError
is a row that was skipped. Both carry the spreadsheet row number (header row
= 1, first data row = 2) so report messages point at the real sheet row.
"""

__all__ = [
    "RowData",
    "RowError",
    "RowOutcome",
]


@dataclass(frozen=True)
class RowData:
    """A converted row, ready for reconciliation."""
    row_number: int  # spreadsheet row (1-based, header = 1)
    key: str  # primary key value
    values: dict[str, Any]  # field -> converted value (schema fields only)
    present_fields: frozenset[str] = field(default_factory=frozenset)  # non-blank cells


@dataclass(frozen=True)
class RowError:
    """A skipped row and the reason it was skipped."""
    row_number: int
    error_type: str  # UPPER_SNAKE
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass(frozen=True)
class RowOutcome:
    """Pass-two result for a row that will be written (or skipped as a no-op)."""
    row: RowData
    record: dict[str, Any]
    created: bool
    changed: bool
