#!/usr/bin/env python3
"""Sample upload generator for smoke / performance testing.

Generates a synthetic upload sheet for one entity kind in the layout the
upload engine expects:
- Row 1: Header row (schema field names)
- Row 2+: Data rows

Output format follows the file extension (.xlsx or .csv).
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from roster_import.models.schema import EntityKind, get_schema

DIFFICULTIES = ["Beginner", "Intermediate", "Advanced"]
SUBJECTS = ["Math", "Science", "English", "History", "Art"]
CLASSES = ["1A", "1B", "2A", "2B", "3A", "3B"]


def generate_rows(kind: EntityKind, rows: int, seed: int = 42) -> pd.DataFrame:
    """Build a DataFrame of ``rows`` synthetic records for ``kind``.

    Keys are sequential (S0001 / T0001 / G0001) so repeated runs with the same
    size hit the same keys, which exercises the update path.
    """
    rng = np.random.default_rng(seed)
    data: dict[str, list[Any]] = {}

    if kind is EntityKind.STUDENTS:
        data["student_id"] = [f"S{i:04d}" for i in range(1, rows + 1)]
        data["name_1"] = [f"Student {i}" for i in range(1, rows + 1)]
        data["name_2"] = [f"学生 {i}" for i in range(1, rows + 1)]
        data["marks"] = rng.integers(0, 500, rows).tolist()
        data["class"] = rng.choice(CLASSES, rows).tolist()
        data["class_no"] = [str(i % 40 + 1) for i in range(rows)]
        data["last_login"] = ["2024-09-01T08:00:00.000Z"] * rows
        data["teacher_id"] = [f"T{i % 20 + 1:04d}" for i in range(rows)]
        data["password"] = ["changeme"] * rows
    elif kind is EntityKind.TEACHERS:
        data["teacher_id"] = [f"T{i:04d}" for i in range(1, rows + 1)]
        data["name"] = [f"Teacher {i}" for i in range(1, rows + 1)]
        data["email"] = [f"teacher{i}@example.edu" for i in range(1, rows + 1)]
        data["password"] = ["changeme"] * rows
        data["classes"] = [
            '["' + '","'.join(rng.choice(CLASSES, 2, replace=False).tolist()) + '"]'
            for _ in range(rows)
        ]
        data["is_admin"] = rng.choice([True, False], rows, p=[0.1, 0.9]).tolist()
        data["last_login"] = ["2024-09-01T08:00:00.000Z"] * rows
    else:
        game_ids = [f"G{i:04d}" for i in range(1, rows + 1)]
        data["game_id"] = game_ids
        data["game_name"] = [f"Game {i}" for i in range(1, rows + 1)]
        data["student_id"] = [f"S{i % 100 + 1:04d}" for i in range(rows)]
        data["subject"] = rng.choice(SUBJECTS, rows).tolist()
        data["difficulty"] = rng.choice(DIFFICULTIES, rows).tolist()
        data["teacher_id"] = [f"T{i % 20 + 1:04d}" for i in range(rows)]
        data["scratch_id"] = [str(1000000 + i) for i in range(rows)]
        data["scratch_api"] = [f"https://scratch.mit.edu/projects/{g}" for g in game_ids]
        data["accumulated_click"] = [0] * rows
        data["description"] = [f"Synthetic game {g}" for g in game_ids]

    df = pd.DataFrame(data)
    # ヘッダ順はスキーマ定義順に揃える (classes エイリアス含む)
    schema = get_schema(kind)
    ordered = [c for c in df.columns if schema.canonical_header(c) in schema.fields]
    return df[ordered]


def write_upload(output_path: Path, df: pd.DataFrame) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == ".csv":
        df.to_csv(output_path, index=False)
    else:
        df.to_excel(output_path, index=False, engine="openpyxl")
    print(f"Created upload file: {output_path}")
    print(f"  Rows: {len(df)} (+ 1 header row)")
    print(f"  Columns: {len(df.columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate synthetic upload sheets for the bulk upsert engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 4000 games (the per-upload maximum)
  %(prog)s games.xlsx --kind games --rows 4000

  # Small students CSV
  %(prog)s students.csv --kind students --rows 50
        """,
    )
    parser.add_argument("output", type=Path, help="Output file (.xlsx or .csv)")
    parser.add_argument("--kind", required=True, choices=[k.value for k in EntityKind])
    parser.add_argument("--rows", type=int, default=1000, help="Number of data rows (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if args.output.suffix.lower() not in (".xlsx", ".csv"):
        print("Error: output must end with .xlsx or .csv", file=sys.stderr)
        return 1

    try:
        write_upload(args.output, generate_rows(EntityKind(args.kind), args.rows, args.seed))
    except OSError as e:
        print(f"Error creating upload file: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
