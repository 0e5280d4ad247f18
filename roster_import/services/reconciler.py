from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models.row_data import RowData, RowError, RowOutcome
from ..models.schema import EntitySchema
from ..store.gateway import BatchStoreGateway, ReadResult
from .record_builder import finalize_row

"""Reconciler: create vs. update routing per primary key.

Existence is decided from batched reads only (never one lookup per key). A
key missing from every read response is a create. A key whose read chunk
kept failing is neither: the row is reported as failed rather than risk
re-creating an existing record (which would reset created_at and
accumulated_click). No version check is made; last writer wins.
"""

__all__ = [
    "ReconcileResult",
    "lookup_existing",
    "route_rows",
    "reconcile",
]

logger = logging.getLogger(__name__)

READ_FAILED = "READ_FAILED"


@dataclass
class ReconcileResult:
    outcomes: list[RowOutcome] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)

    @property
    def to_write(self) -> list[RowOutcome]:
        """Creates and changed updates. Unchanged updates need no write."""
        return [o for o in self.outcomes if o.created or o.changed]


def lookup_existing(
    schema: EntitySchema, rows: Sequence[RowData], gateway: BatchStoreGateway
) -> ReadResult:
    return gateway.batch_get(schema.kind, [r.key for r in rows])


def route_rows(
    schema: EntitySchema,
    rows: Sequence[RowData],
    lookup: ReadResult,
    now: str,
) -> ReconcileResult:
    result = ReconcileResult()
    for row in rows:
        if row.key in lookup.failed:
            result.errors.append(RowError(row.row_number, READ_FAILED, lookup.failed[row.key]))
            continue
        outcome = finalize_row(schema, row, lookup.records.get(row.key), now)
        if isinstance(outcome, RowError):
            result.errors.append(outcome)
        else:
            result.outcomes.append(outcome)
    logger.debug(
        "reconcile kind=%s rows=%d existing=%d errors=%d",
        schema.kind.value, len(rows), len(lookup.records), len(result.errors),
    )
    return result


def reconcile(
    schema: EntitySchema,
    rows: Sequence[RowData],
    gateway: BatchStoreGateway,
    now: str,
) -> ReconcileResult:
    return route_rows(schema, rows, lookup_existing(schema, rows, gateway), now)
