from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-run error log.

The orchestrator appends one ErrorRecord per report error; the CLI flushes
them once at the end of the run to ``logs/errors-YYYYMMDD-HHMMSS.log``.
Nothing is created on disk for a clean run.
"""

__all__ = [
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Buffers ErrorRecords in memory; flush() appends them as JSON Lines."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._logs_dir = logs_dir or LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._counts: Counter[str] = Counter()
        self._path: Path | None = None

    @property
    def records(self) -> list[ErrorRecord]:
        """Records not yet flushed."""
        return list(self._pending)

    @property
    def counts(self) -> dict[str, int]:
        """error_type -> number of records appended during this run."""
        return dict(self._counts)

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)
        self._counts[record.error_type] += 1

    def _target(self) -> Path:
        # 1 実行 1 ファイル (初回 flush 時に確定)
        if self._path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            self._path = self._logs_dir / f"errors-{datetime.now(UTC).strftime(TIMESTAMP_FMT)}.log"
        return self._path

    def flush(self) -> Path | None:
        """Append pending records. Returns the log path, or None when there was nothing to write."""
        if not self._pending:
            return None
        path = self._target()
        with path.open("a", encoding="utf-8") as f:
            f.writelines(record.to_json_line() + "\n" for record in self._pending)
        self._pending.clear()
        return path
