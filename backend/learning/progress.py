"""
Learner progress persistence over the `user_progress` table.

Why:
    One record per (learner, item), written best-effort while the learner
    navigates. A failed write is retried once silently and otherwise reported
    through a non-blocking notification; it never interrupts navigation.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from backend.storage.config import get_progress_table
from backend.storage.ports import DataStoreProtocol, Row

from .outline import ContentItem
from .percent import round_half_up

logger = logging.getLogger("lumen.learning")


class PersistenceError(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class ProgressRecord:
    learner_id: str
    item_id: str
    percent: int
    completed: bool
    id: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "percent": self.percent,
            "completed": self.completed,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class ProgressSummary:
    overall_percent: int
    completed_count: int
    remaining_count: int

    @property
    def total_records(self) -> int:
        return self.completed_count + self.remaining_count


def _record_from_row(row: Row) -> ProgressRecord:
    try:
        percent = int(row.get("progress") or 0)
    except (TypeError, ValueError):
        percent = 0
    return ProgressRecord(
        learner_id=str(row.get("user_id")),
        item_id=str(row.get("content_id")),
        percent=percent,
        completed=bool(row.get("completed")),
        id=row.get("id"),
        updated_at=row.get("updated_at"),
    )


def summarize(records: List[ProgressRecord]) -> ProgressSummary:
    """Mean percent (half-up rounded), completed count and the remainder."""
    if not records:
        return ProgressSummary(overall_percent=0, completed_count=0, remaining_count=0)
    completed = sum(1 for r in records if r.completed)
    mean = sum(r.percent for r in records) / len(records)
    return ProgressSummary(
        overall_percent=round_half_up(mean),
        completed_count=completed,
        remaining_count=len(records) - completed,
    )


class ProgressStore:
    def __init__(self, store: DataStoreProtocol, table: Optional[str] = None) -> None:
        self._store = store
        self._table = table or get_progress_table()

    async def mark_progress(self, learner_id: str, item_id: str, percent: int, completed: bool) -> ProgressRecord:
        """Upsert the record for (learner, item). Raises PersistenceError."""
        value = 100 if completed else max(0, min(100, int(percent)))
        record = {
            "user_id": learner_id,
            "content_id": item_id,
            "progress": value,
            "completed": bool(completed),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        res = await self._store.upsert(self._table, record, on_conflict=("user_id", "content_id"))
        if res.error is not None:
            raise PersistenceError(res.error.code)
        row = res.first()
        return _record_from_row(row) if row is not None else _record_from_row(record)

    async def list_records(self, learner_id: str) -> List[ProgressRecord]:
        """All records for the learner, most recently updated first."""
        res = await self._store.select(
            self._table, filters={"user_id": learner_id}, order=[("updated_at", True)]
        )
        if res.error is not None:
            raise PersistenceError(res.error.code)
        return [_record_from_row(r) for r in res.data]

    async def aggregate(self, learner_id: str) -> ProgressSummary:
        return summarize(await self.list_records(learner_id))


FailureCallback = Callable[[str, PersistenceError], None]


class ProgressRecorder:
    """Fire-and-forget progress writes for one learner.

    `record_visit` returns immediately; the write runs as a background task.
    Failed items are kept in `failures` for the UI to show a notification.
    """

    def __init__(
        self,
        store: ProgressStore,
        learner_id: str,
        *,
        on_failure: Optional[FailureCallback] = None,
    ) -> None:
        self._store = store
        self.learner_id = learner_id
        self._on_failure = on_failure
        self._tasks: Set["asyncio.Task[None]"] = set()
        self.failures: List[str] = []

    def record_visit(self, item: ContentItem) -> None:
        self.submit(item.id, 100, True)

    def submit(self, item_id: str, percent: int, completed: bool) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; progress write dropped")
            return
        task = loop.create_task(self._write(item_id, percent, completed))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _write(self, item_id: str, percent: int, completed: bool) -> None:
        try:
            await self._store.mark_progress(self.learner_id, item_id, percent, completed)
            return
        except PersistenceError:
            pass
        try:
            await self._store.mark_progress(self.learner_id, item_id, percent, completed)
        except PersistenceError as exc:
            logger.warning("Progress write failed after retry (code=%s)", exc.code)
            self.failures.append(item_id)
            if self._on_failure is not None:
                try:
                    self._on_failure(item_id, exc)
                except Exception:
                    logger.exception("Progress failure callback raised")

    def take_failures(self) -> List[str]:
        """Return and clear pending failure notifications."""
        out, self.failures = self.failures, []
        return out

    async def drain(self) -> None:
        """Wait for all pending writes (tests, shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = [
    "PersistenceError",
    "ProgressRecord",
    "ProgressSummary",
    "ProgressStore",
    "ProgressRecorder",
    "summarize",
]
