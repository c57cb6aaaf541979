"""
Course outline model and the single flattening/index mapping.

Why:
    Sections hold ordered items; learners traverse them as one linear
    sequence. Every navigation path (`next`, `previous`, `jump_to`, table of
    contents) goes through `flat_position`/`position_at` here, so arriving at
    an item by any route yields the same position and percentage.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from backend.storage.config import get_content_table, get_courses_table, get_sections_table
from backend.storage.ports import DataStoreProtocol, Row

logger = logging.getLogger("lumen.learning")

Position = tuple[int, int]


class ContentType(str, Enum):
    TEXT = "text"
    VIDEO = "video"
    IMAGE = "image"
    PDF = "pdf"

    @classmethod
    def parse(cls, value: object) -> Optional["ContentType"]:
        if isinstance(value, ContentType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ContentItem:
    id: str
    title: str
    type: ContentType
    payload: Any = None
    order: int = 0


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    order: int = 0
    items: tuple[ContentItem, ...] = ()


@dataclass(frozen=True)
class CourseOutline:
    """Immutable snapshot of a course's sections and items, in traversal order."""

    course_id: str
    sections: tuple[Section, ...] = ()
    title: str = ""
    description: str = ""

    @classmethod
    def build(
        cls, course_id: str, sections: Iterable[Section], *, title: str = "", description: str = ""
    ) -> "CourseOutline":
        """Sort sections and their items by (order, id) and freeze them."""
        ordered = []
        for sec in sorted(sections, key=lambda s: (s.order, s.id)):
            items = tuple(sorted(sec.items, key=lambda i: (i.order, i.id)))
            ordered.append(Section(id=sec.id, title=sec.title, order=sec.order, items=items))
        return cls(course_id=course_id, sections=tuple(ordered), title=title, description=description)

    @property
    def total_items(self) -> int:
        return sum(len(s.items) for s in self.sections)

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0

    def item_at(self, position: Position) -> ContentItem:
        s, i = position
        return self.sections[s].items[i]


def flatten(outline: CourseOutline) -> list[Position]:
    """All (section_index, item_index) pairs in section order, then item order."""
    return [(s, i) for s, sec in enumerate(outline.sections) for i in range(len(sec.items))]


def flat_position(outline: CourseOutline, section_index: int, item_index: int) -> int:
    """Items in all earlier sections plus `item_index`. Raises IndexError when invalid."""
    if not 0 <= section_index < len(outline.sections):
        raise IndexError("section_index out of range")
    if not 0 <= item_index < len(outline.sections[section_index].items):
        raise IndexError("item_index out of range")
    before = sum(len(outline.sections[k].items) for k in range(section_index))
    return before + item_index


def position_at(outline: CourseOutline, flat: int) -> Position:
    """Inverse of `flat_position`. Raises IndexError when out of range."""
    if flat < 0:
        raise IndexError("flat position out of range")
    remaining = flat
    for s, sec in enumerate(outline.sections):
        if remaining < len(sec.items):
            return (s, remaining)
        remaining -= len(sec.items)
    raise IndexError("flat position out of range")


def locate(outline: CourseOutline, section_id: str, item_id: Optional[str] = None) -> Optional[Position]:
    """Find a section (and optionally an item in it) by id."""
    for s, sec in enumerate(outline.sections):
        if sec.id != section_id:
            continue
        if item_id is None:
            return (s, 0) if sec.items else None
        for i, item in enumerate(sec.items):
            if item.id == item_id:
                return (s, i)
        return None
    return None


def locate_item(outline: CourseOutline, item_id: str) -> Optional[Position]:
    for s, sec in enumerate(outline.sections):
        for i, item in enumerate(sec.items):
            if item.id == item_id:
                return (s, i)
    return None


# --- Loading -------------------------------------------------------------------


# Raised as the OutlineLoadError code when the course row itself is missing.
COURSE_NOT_FOUND = "course_not_found"


class OutlineLoadError(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def _order(row: Row) -> int:
    try:
        return int(row.get("order_index") or 0)
    except (TypeError, ValueError):
        return 0


def _payload(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return {"text": raw}
    return raw


def item_from_row(row: Row) -> Optional[ContentItem]:
    ctype = ContentType.parse(row.get("content_type") or row.get("type"))
    if ctype is None:
        logger.warning("Skipping content item with unsupported type")
        return None
    return ContentItem(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        type=ctype,
        payload=_payload(row.get("content")),
        order=_order(row),
    )


def _warn_duplicate_orders(kind: str, rows: list[Row]) -> None:
    orders = [_order(r) for r in rows]
    if len(orders) != len(set(orders)):
        logger.warning("Duplicate %s order_index values; ties broken by id", kind)


async def load_outline(store: DataStoreProtocol, course_id: str) -> CourseOutline:
    """Load the outline of a course; raises OutlineLoadError on backend failure.

    An unknown course raises with code `COURSE_NOT_FOUND`; a known course
    without sections is an empty outline.
    """
    sections_table = get_sections_table()
    content_table = get_content_table()
    course = await store.select(get_courses_table(), filters={"id": course_id}, single=True)
    if course.error is not None:
        if course.error.is_no_rows:
            raise OutlineLoadError(COURSE_NOT_FOUND)
        raise OutlineLoadError(course.error.code)
    course_row = course.first() or {}
    res = await store.select(
        sections_table, filters={"course_id": course_id}, order=[("order_index", False), ("id", False)]
    )
    if res.error is not None:
        raise OutlineLoadError(res.error.code)
    _warn_duplicate_orders("section", res.data)

    content_results = await asyncio.gather(
        *(
            store.select(content_table, filters={"section_id": row["id"]}, order=[("order_index", False), ("id", False)])
            for row in res.data
        )
    )
    sections = []
    for row, items_res in zip(res.data, content_results):
        if items_res.error is not None:
            raise OutlineLoadError(items_res.error.code)
        _warn_duplicate_orders("content", items_res.data)
        items = [it for it in (item_from_row(r) for r in items_res.data) if it is not None]
        sections.append(
            Section(id=str(row["id"]), title=str(row.get("title") or ""), order=_order(row), items=tuple(items))
        )
    outline = CourseOutline.build(
        course_id,
        sections,
        title=str(course_row.get("title") or ""),
        description=str(course_row.get("description") or ""),
    )
    logger.debug("Loaded outline with %d sections, %d items", len(outline.sections), outline.total_items)
    return outline


__all__ = [
    "ContentType",
    "ContentItem",
    "Section",
    "CourseOutline",
    "Position",
    "flatten",
    "flat_position",
    "position_at",
    "locate",
    "locate_item",
    "OutlineLoadError",
    "COURSE_NOT_FOUND",
    "item_from_row",
    "load_outline",
]
