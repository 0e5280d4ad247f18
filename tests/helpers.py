# Test helpers shared across unit / integration / contract suites
from __future__ import annotations
import io
from typing import Any

import pandas as pd

FIXED_NOW = "2025-01-01T00:00:00.000Z"
LATER_NOW = "2025-02-01T12:30:00.000Z"


def xlsx_bytes(rows: list[list[Any]]) -> bytes:
    """Build an .xlsx payload whose first row is the header row."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Sheet1", header=False, index=False)
    return buf.getvalue()


def csv_bytes(rows: list[list[Any]]) -> bytes:
    lines = [",".join("" if v is None else str(v) for v in row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


GAME_HEADERS = [
    "game_id", "game_name", "student_id", "subject", "difficulty", "teacher_id",
    "scratch_id", "scratch_api", "accumulated_click", "description",
]

STUDENT_HEADERS = [
    "student_id", "name_1", "name_2", "marks", "class", "class_no",
    "last_login", "last_update", "teacher_id", "password",
]

TEACHER_HEADERS = [
    "teacher_id", "name", "email", "password", "classes", "is_admin", "last_login", "last_update",
]


def game_row(game_id: str, name: str = "Maze", clicks: Any = 0, scratch_api: str | None = None) -> list[Any]:
    return [
        game_id, name, "S0001", "Math", "Beginner", "T0001", "1001",
        scratch_api if scratch_api is not None else f"https://scratch.mit.edu/projects/{game_id}",
        clicks, "A maze game",
    ]


def student_row(student_id: Any, name: str = "Alice", marks: Any = 10) -> list[Any]:
    return [student_id, name, "アリス", marks, "1A", "5", "2024-09-01T08:00:00Z", None, "T0001", "pw"]
