"""
Data Store ports used by the identity and learning contexts.

Keep these small and framework-agnostic so tests can supply simple fakes.

Contract:
    Every call returns a `StoreResult` carrying either `data` (a list of row
    dicts) or an `error`. Backend failures never raise; callers inspect
    `result.error` and translate it into their own domain exceptions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

# PostgREST answers `.single()` on an empty result with this code.
NO_ROWS_CODE = "PGRST116"
# Postgres unique_violation (duplicate primary key / conflict target).
UNIQUE_VIOLATION_CODE = "23505"
# Transport level failure (connection refused, timeout, DNS).
NETWORK_ERROR_CODE = "network_error"

Row = dict[str, Any]
Filter = Mapping[str, Any]
# (column, descending)
Order = Sequence[tuple[str, bool]]


@dataclass(frozen=True)
class StoreError:
    code: str
    message: str = ""

    @property
    def is_no_rows(self) -> bool:
        return self.code == NO_ROWS_CODE

    @property
    def is_conflict(self) -> bool:
        return self.code == UNIQUE_VIOLATION_CODE

    @property
    def is_network(self) -> bool:
        return self.code == NETWORK_ERROR_CODE


@dataclass(frozen=True)
class StoreResult:
    data: list[Row] = field(default_factory=list)
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def first(self) -> Optional[Row]:
        return self.data[0] if self.data else None


class DataStoreProtocol(Protocol):
    """Minimal per-table request/response interface.

    Intent:
        Decouple session resolution, outline loading and progress persistence
        from a specific SDK. `single=True` asks for exactly one row and yields
        `NO_ROWS_CODE` when nothing matches.
    """

    async def select(
        self,
        table: str,
        *,
        filters: Optional[Filter] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        single: bool = False,
    ) -> StoreResult: ...

    async def insert(self, table: str, record: Row) -> StoreResult: ...

    async def update(self, table: str, *, filters: Filter, patch: Row) -> StoreResult: ...

    async def upsert(self, table: str, record: Row, *, on_conflict: Sequence[str]) -> StoreResult: ...

    async def delete(self, table: str, *, filters: Filter) -> StoreResult: ...


__all__ = [
    "DataStoreProtocol",
    "StoreError",
    "StoreResult",
    "Row",
    "Filter",
    "Order",
    "NO_ROWS_CODE",
    "UNIQUE_VIOLATION_CODE",
    "NETWORK_ERROR_CODE",
]
