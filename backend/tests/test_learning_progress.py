"""
Progress persistence: upsert per (learner, item), aggregate, and the
fire-and-forget recorder with one silent retry.
"""
from __future__ import annotations

import pytest

from backend.learning.navigator import ContentNavigator
from backend.learning.outline import ContentItem, ContentType, CourseOutline, Section
from backend.learning.progress import PersistenceError, ProgressRecorder, ProgressStore
from backend.storage.memory import InMemoryDataStore
from backend.storage.ports import NETWORK_ERROR_CODE, StoreError, StoreResult


pytestmark = pytest.mark.anyio("asyncio")


class FlakyStore(InMemoryDataStore):
    """Fails the first `failures` upserts."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.upserts = 0

    async def upsert(self, table, record, *, on_conflict):
        self.upserts += 1
        if self.failures > 0:
            self.failures -= 1
            return StoreResult(error=StoreError(NETWORK_ERROR_CODE))
        return await super().upsert(table, record, on_conflict=on_conflict)


@pytest.mark.anyio
async def test_mark_progress_upserts_one_record_per_item():
    store = InMemoryDataStore()
    progress = ProgressStore(store)
    await progress.mark_progress("u1", "i1", 40, False)
    rec = await progress.mark_progress("u1", "i1", 70, False)
    assert rec.percent == 70 and rec.completed is False
    rows = store.rows("user_progress")
    assert len(rows) == 1
    assert rows[0]["user_id"] == "u1" and rows[0]["content_id"] == "i1"


@pytest.mark.anyio
async def test_completed_forces_full_percent_and_values_clamp():
    progress = ProgressStore(InMemoryDataStore())
    assert (await progress.mark_progress("u1", "i1", 10, True)).percent == 100
    assert (await progress.mark_progress("u1", "i2", 150, False)).percent == 100
    assert (await progress.mark_progress("u1", "i3", -4, False)).percent == 0


@pytest.mark.anyio
async def test_aggregate_rounds_mean_half_up():
    progress = ProgressStore(InMemoryDataStore())
    assert (await progress.aggregate("u1")).overall_percent == 0
    await progress.mark_progress("u1", "a", 100, True)
    await progress.mark_progress("u1", "b", 25, False)
    await progress.mark_progress("u1", "c", 0, False)
    await progress.mark_progress("u1", "d", 0, False)
    await progress.mark_progress("other", "a", 0, False)
    summary = await progress.aggregate("u1")
    # mean = 31.25
    assert summary.overall_percent == 31
    assert summary.completed_count == 1
    assert summary.remaining_count == 3
    assert summary.total_records == 4


@pytest.mark.anyio
async def test_aggregate_half_values_round_up():
    progress = ProgressStore(InMemoryDataStore())
    await progress.mark_progress("u1", "a", 25, False)
    await progress.mark_progress("u1", "b", 0, False)
    # mean = 12.5
    assert (await progress.aggregate("u1")).overall_percent == 13


@pytest.mark.anyio
async def test_list_records_newest_first():
    store = InMemoryDataStore(
        {
            "user_progress": [
                {"id": "1", "user_id": "u1", "content_id": "a", "progress": 10, "completed": False, "updated_at": "2024-01-01T00:00:00+00:00"},
                {"id": "2", "user_id": "u1", "content_id": "b", "progress": 100, "completed": True, "updated_at": "2024-03-01T00:00:00+00:00"},
            ]
        }
    )
    records = await ProgressStore(store).list_records("u1")
    assert [r.item_id for r in records] == ["b", "a"]


@pytest.mark.anyio
async def test_backend_failure_raises_persistence_error():
    with pytest.raises(PersistenceError) as info:
        await ProgressStore(FlakyStore(1)).mark_progress("u1", "i1", 10, False)
    assert info.value.code == NETWORK_ERROR_CODE


@pytest.mark.anyio
async def test_recorder_retries_once_silently():
    store = FlakyStore(1)
    notified = []
    recorder = ProgressRecorder(ProgressStore(store), "u1", on_failure=lambda item, exc: notified.append(item))
    recorder.submit("i1", 100, True)
    await recorder.drain()
    assert store.upserts == 2
    assert notified == []
    assert store.rows("user_progress")[0]["completed"] is True


@pytest.mark.anyio
async def test_recorder_reports_after_second_failure():
    store = FlakyStore(5)
    notified = []
    recorder = ProgressRecorder(ProgressStore(store), "u1", on_failure=lambda item, exc: notified.append((item, exc.code)))
    recorder.submit("i1", 100, True)
    await recorder.drain()
    assert store.upserts == 2
    assert notified == [("i1", NETWORK_ERROR_CODE)]
    assert recorder.take_failures() == ["i1"]
    assert recorder.take_failures() == []


@pytest.mark.anyio
async def test_navigation_marks_left_items_visited_in_background():
    items = tuple(ContentItem(id=f"i{n}", title=str(n), type=ContentType.TEXT, order=n) for n in range(3))
    outline = CourseOutline.build("c1", [Section(id="s", title="S", items=items)])
    store = InMemoryDataStore()
    recorder = ProgressRecorder(ProgressStore(store), "u1")
    nav = ContentNavigator(outline, on_leave=recorder.record_visit)

    assert nav.next() is True
    assert nav.next() is True
    # Transitions returned before any write happened.
    assert store.rows("user_progress") == []
    await recorder.drain()

    rows = sorted(store.rows("user_progress"), key=lambda r: r["content_id"])
    assert [(r["content_id"], r["progress"], r["completed"]) for r in rows] == [("i0", 100, True), ("i1", 100, True)]
