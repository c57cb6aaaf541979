"""
In-memory Data Store for development and tests.

Why: Keep the web app and the session/learning core runnable without a
reachable Supabase project. Semantics mirror the subset of PostgREST we use:
equality filters, multi-column ordering, limits, `single` lookups and
upserts keyed by a conflict target.
"""
from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .ports import (
    NO_ROWS_CODE,
    UNIQUE_VIOLATION_CODE,
    Filter,
    Order,
    Row,
    StoreError,
    StoreResult,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches(row: Row, filters: Optional[Filter]) -> bool:
    if not filters:
        return True
    return all(row.get(k) == v for k, v in filters.items())


def _sorted(rows: List[Row], order: Optional[Order]) -> List[Row]:
    out = list(rows)
    # Apply keys last-to-first; Python's sort is stable.
    # Nulls sort last ascending and first descending, as in Postgres.
    for column, descending in reversed(list(order or [])):
        out.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=descending)
    return out


class InMemoryDataStore:
    """Dict-of-lists table store. Rows are deep-copied on the way in and out."""

    def __init__(self, tables: Optional[Dict[str, List[Row]]] = None) -> None:
        self._tables: Dict[str, List[Row]] = {}
        for name, rows in (tables or {}).items():
            self._tables[name] = [copy.deepcopy(r) for r in rows]

    def _table(self, name: str) -> List[Row]:
        return self._tables.setdefault(name, [])

    def rows(self, table: str) -> List[Row]:
        """Snapshot of a table (test/debug helper)."""
        return [copy.deepcopy(r) for r in self._table(table)]

    async def select(
        self,
        table: str,
        *,
        filters: Optional[Filter] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        single: bool = False,
    ) -> StoreResult:
        rows = [r for r in self._table(table) if _matches(r, filters)]
        rows = _sorted(rows, order)
        if limit is not None:
            rows = rows[: max(0, int(limit))]
        if single:
            if len(rows) != 1:
                return StoreResult(error=StoreError(NO_ROWS_CODE, f"expected 1 row, got {len(rows)}"))
        return StoreResult(data=[copy.deepcopy(r) for r in rows])

    async def insert(self, table: str, record: Row) -> StoreResult:
        rows = self._table(table)
        rec = copy.deepcopy(dict(record))
        rec.setdefault("id", str(uuid.uuid4()))
        if any(r.get("id") == rec["id"] for r in rows):
            return StoreResult(error=StoreError(UNIQUE_VIOLATION_CODE, "duplicate key value violates unique constraint"))
        now = _now_iso()
        rec.setdefault("created_at", now)
        rec.setdefault("updated_at", now)
        rows.append(rec)
        return StoreResult(data=[copy.deepcopy(rec)])

    async def update(self, table: str, *, filters: Filter, patch: Row) -> StoreResult:
        changed: List[Row] = []
        for r in self._table(table):
            if _matches(r, filters):
                r.update(copy.deepcopy(dict(patch)))
                changed.append(copy.deepcopy(r))
        return StoreResult(data=changed)

    async def upsert(self, table: str, record: Row, *, on_conflict: Sequence[str]) -> StoreResult:
        key = {col: record.get(col) for col in on_conflict}
        for r in self._table(table):
            if _matches(r, key):
                r.update(copy.deepcopy(dict(record)))
                return StoreResult(data=[copy.deepcopy(r)])
        return await self.insert(table, record)

    async def delete(self, table: str, *, filters: Filter) -> StoreResult:
        rows = self._table(table)
        removed = [r for r in rows if _matches(r, filters)]
        self._tables[table] = [r for r in rows if not _matches(r, filters)]
        return StoreResult(data=removed)


__all__ = ["InMemoryDataStore"]
