"""Learning (course view) API routes.

Each browser session keeps one navigator per open course in its server-side
record. Moving the cursor records the item being left as visited; those
writes run in the background and never delay the response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, Request

from backend.identity_access.domain import STUDENT_AREA
from backend.identity_access.stores import SessionRecord
from backend.learning.navigator import ContentNavigator
from backend.learning.outline import COURSE_NOT_FOUND, OutlineLoadError, load_outline
from backend.learning.progress import ProgressRecorder

from ..session_context import api_error, gate_api, private_json
from ..wiring import get_wiring
from .security import is_same_origin

learning_router = APIRouter(tags=["Learning"])
logger = logging.getLogger("lumen.learning")


@dataclass
class CourseView:
    navigator: ContentNavigator
    recorder: ProgressRecorder


def _view_key(course_id: str) -> str:
    return f"course:{course_id}"


async def open_course(rec: SessionRecord, course_id: str, *, reload: bool = False) -> CourseView:
    """Return the record's view for a course, loading the outline on first use."""
    key = _view_key(course_id)
    existing = rec.views.get(key)
    if isinstance(existing, CourseView) and not reload:
        return existing
    profile = rec.manager.state.profile
    wiring = await get_wiring()
    recorder = ProgressRecorder(wiring.progress_store(), profile.id if profile else "")
    load_error = None
    try:
        outline = await load_outline(wiring.store, course_id)
    except OutlineLoadError as exc:
        if exc.code == COURSE_NOT_FOUND:
            logger.info("Course not found")
        else:
            logger.warning("Outline load failed for course (code=%s)", exc.code)
        outline = None
        load_error = exc.code
    navigator = ContentNavigator(outline, on_leave=recorder.record_visit, load_error=load_error)
    view = CourseView(navigator=navigator, recorder=recorder)
    rec.views[key] = view
    return view


def _view_body(view: CourseView, *, moved: Optional[bool] = None) -> dict[str, Any]:
    body = view.navigator.snapshot()
    if moved is not None:
        body["moved"] = moved
    # Non-blocking notice about progress that could not be saved.
    body["progress_warnings"] = view.recorder.take_failures()
    return body


def _require_learner(request: Request):
    rec, error = gate_api(request, STUDENT_AREA)
    if error:
        return None, error
    if not is_same_origin(request) and request.method != "GET":
        return None, api_error(403, "forbidden", "csrf_violation")
    return rec, None


async def _course_view(request: Request, course_id: str, *, reload: bool = False):
    """Gate the request and open the course; unknown courses answer 404."""
    rec, error = _require_learner(request)
    if error:
        return None, error
    view = await open_course(rec, course_id, reload=reload)
    if view.navigator.display_state == "not_found":
        return None, api_error(404, "not_found", COURSE_NOT_FOUND)
    return view, None


@learning_router.post("/api/courses/{course_id}/open")
async def open_course_view(request: Request, course_id: str):
    """(Re)load the outline and place the cursor on the first item."""
    view, error = await _course_view(request, course_id, reload=True)
    if error:
        return error
    return private_json(_view_body(view))


@learning_router.get("/api/courses/{course_id}/cursor")
async def get_cursor(request: Request, course_id: str):
    view, error = await _course_view(request, course_id)
    if error:
        return error
    return private_json(_view_body(view))


@learning_router.get("/api/courses/{course_id}/outline")
async def get_outline(request: Request, course_id: str):
    """Table of contents with each item's flat position."""
    view, error = await _course_view(request, course_id)
    if error:
        return error
    outline = view.navigator.outline
    flat = 0
    sections = []
    for sec in outline.sections:
        items = []
        for item in sec.items:
            items.append({"id": item.id, "title": item.title, "type": item.type.value, "position": flat})
            flat += 1
        sections.append({"id": sec.id, "title": sec.title, "items": items})
    return private_json(
        {
            "course_id": course_id,
            "title": outline.title,
            "description": outline.description,
            "state": view.navigator.display_state,
            "total_items": flat,
            "sections": sections,
        }
    )


@learning_router.post("/api/courses/{course_id}/next")
async def go_next(request: Request, course_id: str):
    view, error = await _course_view(request, course_id)
    if error:
        return error
    return private_json(_view_body(view, moved=view.navigator.next()))


@learning_router.post("/api/courses/{course_id}/previous")
async def go_previous(request: Request, course_id: str):
    view, error = await _course_view(request, course_id)
    if error:
        return error
    return private_json(_view_body(view, moved=view.navigator.previous()))


@learning_router.post("/api/courses/{course_id}/jump")
async def jump(request: Request, course_id: str, payload: dict[str, Any]):
    """Jump by `section_id` (+ optional `item_id`), by `item_id` alone, or by `position`."""
    view, error = await _course_view(request, course_id)
    if error:
        return error
    nav = view.navigator
    section_id = payload.get("section_id")
    item_id = payload.get("item_id")
    position = payload.get("position")
    if section_id is not None:
        moved = nav.jump_to(str(section_id), str(item_id) if item_id is not None else None)
    elif item_id is not None:
        moved = nav.select_item(str(item_id))
    elif position is not None:
        try:
            moved = nav.jump_to_position(int(position))
        except (TypeError, ValueError):
            return api_error(400, "bad_request", "invalid_position")
    else:
        return api_error(400, "bad_request", "invalid_input")
    return private_json(_view_body(view, moved=moved))
