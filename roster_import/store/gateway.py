from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..models.schema import EntityKind, get_schema
from .base import StoreClient, StoreError

"""Batch store gateway.

Splits reads and writes into chunks that respect the store's per-call item
ceilings (BatchGetItem: 100 keys, BatchWriteItem: 25 items), dispatches the
chunks to a small worker pool, and retries unprocessed items / failed calls
with bounded exponential backoff. Whatever is still unprocessed after the
last attempt is reported back per key so the orchestrator can turn it into
row errors.

Chunk order carries no meaning: each row's outcome depends only on its own
key. There is no cross-chunk transaction; chunks written before a failure
stay written.
"""

__all__ = [
    "BatchMetrics",
    "ReadResult",
    "WriteResult",
    "BatchStoreGateway",
    "chunked",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError(f"chunk size must be >= 1 (got {size})")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for one chunk (all attempts included)."""
    operation: str  # "get" / "put"
    batch_size: int
    attempts: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass
class ReadResult:
    records: dict[str, dict[str, Any]] = field(default_factory=dict)  # key -> stored record
    failed: dict[str, str] = field(default_factory=dict)  # key -> reason


@dataclass
class WriteResult:
    written: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class BatchStoreGateway:
    def __init__(
        self,
        client: StoreClient,
        *,
        batch_size: int = 25,
        batch_get_limit: int = 100,
        max_attempts: int = 3,
        retry_base_delay: float = 0.1,
        max_workers: int = 4,
        sleep: Callable[[float], None] = time.sleep,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        if batch_size < 1 or batch_get_limit < 1:
            raise ValueError("batch sizes must be >= 1")
        self.client = client
        self.batch_size = batch_size
        self.batch_get_limit = batch_get_limit
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.max_workers = max(1, max_workers)
        self._sleep = sleep
        self.metrics_callback = metrics_callback

    @classmethod
    def from_config(cls, client: StoreClient, config: Any, **kwargs: Any) -> BatchStoreGateway:
        return cls(
            client,
            batch_size=config.batch_size,
            batch_get_limit=config.batch_get_limit,
            max_attempts=config.write_max_attempts,
            retry_base_delay=config.retry_base_delay,
            max_workers=config.max_workers,
            **kwargs,
        )

    # --- dispatch -------------------------------------------------------

    def _run_chunks(
        self,
        work: Callable[[list[T]], Any],
        chunks: list[list[T]],
        on_chunk: Callable[[Any], None] | None = None,
    ) -> list[Any]:
        results: list[Any] = []
        if self.max_workers == 1 or len(chunks) <= 1:
            for chunk in chunks:
                part = work(chunk)
                results.append(part)
                if on_chunk is not None:
                    on_chunk(part)
            return results
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunks))) as executor:
            futures = [executor.submit(work, chunk) for chunk in chunks]
            for future in as_completed(futures):
                part = future.result()
                results.append(part)
                if on_chunk is not None:
                    on_chunk(part)
        return results

    def _backoff(self, attempt: int) -> None:
        # attempt は 1 始まり: 2 回目以降のみ待機 (base, base*2, base*4, ...)
        if attempt > 1 and self.retry_base_delay > 0:
            self._sleep(self.retry_base_delay * (2 ** (attempt - 2)))

    def _emit(self, operation: str, size: int, attempts: int, start: float) -> None:
        if self.metrics_callback is None:
            return
        end = time.time()
        self.metrics_callback(
            BatchMetrics(
                operation=operation,
                batch_size=size,
                attempts=attempts,
                elapsed_seconds=end - start,
                start_time=start,
                end_time=end,
            )
        )

    # --- read path ------------------------------------------------------

    def batch_get(self, kind: EntityKind, keys: Sequence[str]) -> ReadResult:
        """Fetch stored records for ``keys``; absent keys are simply missing."""
        unique = list(dict.fromkeys(keys))
        result = ReadResult()
        chunks = list(chunked(unique, self.batch_get_limit))
        for part in self._run_chunks(lambda c: self._get_chunk(kind, c), chunks):
            result.records.update(part.records)
            result.failed.update(part.failed)
        logger.debug(
            "batch_get kind=%s keys=%d chunks=%d found=%d failed=%d",
            kind.value, len(unique), len(chunks), len(result.records), len(result.failed),
        )
        return result

    def _get_chunk(self, kind: EntityKind, keys: list[str]) -> ReadResult:
        key_field = get_schema(kind).key_field
        result = ReadResult()
        pending = list(keys)
        reason = ""
        attempt = 0
        start = time.time()
        while pending and attempt < self.max_attempts:
            attempt += 1
            self._backoff(attempt)
            try:
                got = self.client.get_items(kind, pending)
            except StoreError as e:
                reason = str(e)
                logger.warning("batch read attempt %d/%d failed: %s", attempt, self.max_attempts, e)
                continue
            for item in got.items:
                result.records[str(item[key_field])] = item
            retry = set(got.unprocessed_keys)
            pending = [k for k in pending if k in retry]
            reason = "keys left unprocessed by the store"
        for key in pending:
            result.failed[key] = f"Failed to read existing record after {attempt} attempts ({reason})"
        self._emit("get", len(keys), attempt, start)
        return result

    # --- write path -----------------------------------------------------

    def batch_write(
        self,
        kind: EntityKind,
        records: Sequence[dict[str, Any]],
        on_chunk: Callable[[WriteResult], None] | None = None,
    ) -> WriteResult:
        """Write full records in chunks of ``batch_size``.

        ``on_chunk`` runs on the calling thread with each finished chunk's result.
        """
        result = WriteResult()
        chunks = list(chunked(list(records), self.batch_size))
        for part in self._run_chunks(lambda c: self._write_chunk(kind, c), chunks, on_chunk):
            result.written.extend(part.written)
            result.failed.update(part.failed)
        logger.debug(
            "batch_write kind=%s records=%d chunks=%d written=%d failed=%d",
            kind.value, len(records), len(chunks), len(result.written), len(result.failed),
        )
        return result

    def write_chunk_count(self, record_count: int) -> int:
        return -(-record_count // self.batch_size)

    def _write_chunk(self, kind: EntityKind, records: list[dict[str, Any]]) -> WriteResult:
        key_field = get_schema(kind).key_field
        pending = list(records)
        reason = ""
        attempt = 0
        start = time.time()
        while pending and attempt < self.max_attempts:
            attempt += 1
            self._backoff(attempt)
            try:
                leftovers = self.client.put_items(kind, pending)
            except StoreError as e:
                reason = str(e)
                logger.warning("batch write attempt %d/%d failed: %s", attempt, self.max_attempts, e)
                continue
            retry = {str(r[key_field]) for r in leftovers}
            if retry:
                logger.warning(
                    "batch write attempt %d/%d left %d items unprocessed",
                    attempt, self.max_attempts, len(retry),
                )
            pending = [r for r in pending if str(r[key_field]) in retry]
            reason = "items left unprocessed by the store"
        failed_keys = {str(r[key_field]) for r in pending}
        result = WriteResult(
            written=[str(r[key_field]) for r in records if str(r[key_field]) not in failed_keys],
        )
        for key in failed_keys:
            result.failed[key] = f"Failed to write record after {attempt} attempts ({reason})"
        self._emit("put", len(records), attempt, start)
        return result
