from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..models.schema import EntityKind

"""Store client interface.

A StoreClient performs exactly one backend call per method invocation and
never chunks; the per-call item ceilings are enforced by BatchStoreGateway.
Backend failures are raised as StoreError so the gateway can retry them.
"""

__all__ = [
    "StoreError",
    "GetResult",
    "StoreClient",
]


class StoreError(Exception):
    """A store call failed (throttling, network, validation, ...)."""


@dataclass
class GetResult:
    items: list[dict[str, Any]] = field(default_factory=list)
    unprocessed_keys: list[str] = field(default_factory=list)


class StoreClient(ABC):
    """One-call-per-method key-value store for uploaded entities."""

    @abstractmethod
    def get_items(self, kind: EntityKind, keys: Sequence[str]) -> GetResult:
        """Batched read of up to one chunk of primary keys."""

    @abstractmethod
    def put_items(self, kind: EntityKind, records: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        """Batched full-record write. Returns the records the store left unprocessed."""

    @abstractmethod
    def increment_counter(self, kind: EntityKind, key: str, field_name: str, amount: int = 1) -> int:
        """Atomic store-level increment (click tracking). Returns the new value.

        Hook for the click path only; uploads never call it. They copy the
        stored counter instead.
        """
