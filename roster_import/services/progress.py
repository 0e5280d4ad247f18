from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..store.gateway import WriteResult

"""Write-phase progress bar (tqdm, TTY only).

The gateway reports each finished write chunk to ``chunk_done``; the bar
ticks once per chunk and shows running written / failed item counts. Off a
TTY (CI, Lambda logs) no bar is created, only the counters are kept.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Usage::

        with ProgressTracker(gateway.write_chunk_count(n), description="Writing games") as progress:
            gateway.batch_write(kind, records, on_chunk=progress.chunk_done)
    """

    def __init__(self, total_chunks: int, *, description: str = "Writing") -> None:
        self.total_chunks = total_chunks
        self.chunks = 0
        self.written = 0
        self.failed = 0
        self.pbar: TqdmType[Any] | None = None
        if total_chunks > 0 and is_tty_enabled():
            self.pbar = tqdm(
                total=total_chunks,
                desc=description,
                unit="chunk",
                leave=True,
                ncols=80,
                ascii=True,
            )

    @property
    def enabled(self) -> bool:
        return self.pbar is not None

    def chunk_done(self, part: WriteResult) -> None:
        self.chunks += 1
        self.written += len(part.written)
        self.failed += len(part.failed)
        if self.pbar is not None:
            self.pbar.set_postfix(written=self.written, failed=self.failed, refresh=False)
            self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
