"""
Supabase-backed Data Store (PostgREST tables via supabase-py).

This adapter implements DataStoreProtocol using a provided async Supabase
client. It is intentionally duck-typed to avoid a hard dependency during
testing. The client is expected to expose `.table(name)` returning a
PostgREST request builder (`select/insert/update/upsert/delete`, `.eq`,
`.order`, `.limit`, `.single`, awaitable `.execute()`).

Security:
- The caller must initialize the client with the Service Role key or with a
  user-scoped key whose RLS policies allow the accessed rows.
- Errors are reduced to `{code, message}`; no request payloads are logged.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

import httpx
from postgrest.exceptions import APIError

from .ports import NETWORK_ERROR_CODE, Filter, Order, Row, StoreError, StoreResult

logger = logging.getLogger("lumen.storage")


def _apply_filters(query: Any, filters: Optional[Filter]) -> Any:
    for column, value in (filters or {}).items():
        query = query.eq(column, value)
    return query


def _rows(data: Any) -> list[Row]:
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return [dict(r) for r in data]


class SupabaseDataStore:
    """Data Store using a supabase client for PostgREST table access."""

    def __init__(self, client: Any) -> None:
        # Duck-typed async client, e.g. `await supabase.acreate_client(...)`.
        self._client = client

    async def _run(self, table: str, op: str, build: Callable[[], Any]) -> StoreResult:
        try:
            resp = await build().execute()
        except APIError as exc:
            code = str(getattr(exc, "code", "") or "api_error")
            logger.debug("Data store %s on %s failed: %s", op, table, code)
            return StoreResult(error=StoreError(code, str(getattr(exc, "message", "") or "")))
        except httpx.HTTPError as exc:
            logger.warning("Data store %s on %s unreachable: %s", op, table, exc.__class__.__name__)
            return StoreResult(error=StoreError(NETWORK_ERROR_CODE, exc.__class__.__name__))
        return StoreResult(data=_rows(getattr(resp, "data", None)))

    async def select(
        self,
        table: str,
        *,
        filters: Optional[Filter] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        single: bool = False,
    ) -> StoreResult:
        def build() -> Any:
            q = _apply_filters(self._client.table(table).select("*"), filters)
            for column, descending in order or []:
                q = q.order(column, desc=descending)
            if limit is not None:
                q = q.limit(int(limit))
            if single:
                q = q.single()
            return q

        return await self._run(table, "select", build)

    async def insert(self, table: str, record: Row) -> StoreResult:
        return await self._run(table, "insert", lambda: self._client.table(table).insert(dict(record)))

    async def update(self, table: str, *, filters: Filter, patch: Row) -> StoreResult:
        return await self._run(
            table, "update", lambda: _apply_filters(self._client.table(table).update(dict(patch)), filters)
        )

    async def upsert(self, table: str, record: Row, *, on_conflict: Sequence[str]) -> StoreResult:
        return await self._run(
            table,
            "upsert",
            lambda: self._client.table(table).upsert(dict(record), on_conflict=",".join(on_conflict)),
        )

    async def delete(self, table: str, *, filters: Filter) -> StoreResult:
        return await self._run(table, "delete", lambda: _apply_filters(self._client.table(table).delete(), filters))


__all__ = ["SupabaseDataStore"]
