"""Progress API routes: the learner's aggregate, record list and explicit marks."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from backend.identity_access.domain import STUDENT_AREA
from backend.learning.progress import PersistenceError, summarize

from ..session_context import api_error, gate_api, private_json
from ..wiring import get_wiring
from .security import is_same_origin

progress_router = APIRouter(tags=["Progress"])


@progress_router.get("/api/progress")
async def get_progress(request: Request):
    """Return `{summary, records}` for the signed-in learner, newest first."""
    rec, error = gate_api(request, STUDENT_AREA)
    if error:
        return error
    learner_id = rec.manager.state.profile.id
    store = (await get_wiring()).progress_store()
    try:
        records = await store.list_records(learner_id)
    except PersistenceError as exc:
        return api_error(503, "progress_unavailable", exc.code, headers={"Retry-After": "1"})
    summary = summarize(records)
    return private_json(
        {
            "summary": {
                "overall_percent": summary.overall_percent,
                "completed_count": summary.completed_count,
                "remaining_count": summary.remaining_count,
            },
            "records": [r.to_dict() for r in records],
        }
    )


@progress_router.post("/api/progress/{item_id}")
async def mark_progress(request: Request, item_id: str, payload: dict[str, Any]):
    """Upsert progress for one item: `{"percent": 0..100, "completed": bool}`."""
    rec, error = gate_api(request, STUDENT_AREA)
    if error:
        return error
    if not is_same_origin(request):
        return api_error(403, "forbidden", "csrf_violation")
    completed = payload.get("completed", False)
    if not isinstance(completed, bool):
        return api_error(400, "bad_request", "invalid_completed")
    try:
        percent = int(payload.get("percent", 100 if completed else 0))
    except (TypeError, ValueError):
        return api_error(400, "bad_request", "invalid_percent")
    if not 0 <= percent <= 100:
        return api_error(400, "bad_request", "invalid_percent")
    store = (await get_wiring()).progress_store()
    learner_id = rec.manager.state.profile.id
    try:
        record = await store.mark_progress(learner_id, item_id, percent, completed)
    except PersistenceError:
        # One silent retry before reporting.
        try:
            record = await store.mark_progress(learner_id, item_id, percent, completed)
        except PersistenceError as exc:
            return api_error(503, "progress_unavailable", exc.code, headers={"Retry-After": "1"})
    return private_json(record.to_dict())
