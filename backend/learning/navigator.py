"""
Linear traversal over a course outline.

Why:
    Learners move through sections and items as one sequence. The navigator
    keeps a single flat index and derives (section, item) from it through
    `outline.position_at`, so `next`, `previous`, `jump_to` and table-of-contents
    selection all agree on position and percentage.

Behavior:
    - Starts at the first item of the first non-empty section.
    - Boundaries are no-ops; out-of-range requests are clamped.
    - Nothing here raises. A failed outline load is a "no content" state;
      an unknown course is reported as "not_found".
    - Each successful move calls `on_leave(item)` for the item being left.
      The callback is expected to return immediately (fire-and-forget write).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .outline import COURSE_NOT_FOUND, ContentItem, CourseOutline, flat_position, locate, locate_item, position_at
from .percent import percent_of

logger = logging.getLogger("lumen.learning")

LeaveCallback = Callable[[ContentItem], None]


@dataclass(frozen=True)
class NavigationCursor:
    section_index: int
    item_index: int
    flat_position: int


class ContentNavigator:
    def __init__(
        self,
        outline: Optional[CourseOutline],
        *,
        on_leave: Optional[LeaveCallback] = None,
        load_error: Optional[str] = None,
    ) -> None:
        self.load_failed = outline is None
        self.load_error = load_error if outline is None else None
        self.outline = outline if outline is not None else CourseOutline(course_id="")
        self._on_leave = on_leave
        self._total = self.outline.total_items
        self._flat = 0

    # --- Read interface ------------------------------------------------------------

    @property
    def has_content(self) -> bool:
        return self._total > 0

    @property
    def display_state(self) -> str:
        if self.load_error == COURSE_NOT_FOUND:
            return "not_found"
        if self.load_failed:
            return "unavailable"
        return "content" if self.has_content else "empty"

    @property
    def total_items(self) -> int:
        return self._total

    @property
    def flat_position(self) -> int:
        return self._flat if self.has_content else 0

    @property
    def cursor(self) -> Optional[NavigationCursor]:
        if not self.has_content:
            return None
        s, i = position_at(self.outline, self._flat)
        return NavigationCursor(section_index=s, item_index=i, flat_position=self._flat)

    @property
    def current_item(self) -> Optional[ContentItem]:
        cur = self.cursor
        if cur is None:
            return None
        return self.outline.item_at((cur.section_index, cur.item_index))

    @property
    def percent_complete(self) -> int:
        if not self.has_content:
            return 0
        return percent_of(self._flat + 1, self._total)

    @property
    def can_next(self) -> bool:
        return self.has_content and self._flat + 1 < self._total

    @property
    def can_previous(self) -> bool:
        return self.has_content and self._flat > 0

    # --- Transitions -----------------------------------------------------------------

    def next(self) -> bool:
        if not self.can_next:
            return False
        return self._move_to(self._flat + 1)

    def previous(self) -> bool:
        if not self.can_previous:
            return False
        return self._move_to(self._flat - 1)

    def jump_to(self, section_id: str, item_id: Optional[str] = None) -> bool:
        """Move to an item of a section; unknown items clamp to the section's start.

        Returns False (cursor unchanged) for an unknown section.
        """
        if not self.has_content:
            return False
        pos = locate(self.outline, section_id, item_id)
        if pos is not None:
            return self._move_to(flat_position(self.outline, *pos))
        for s, sec in enumerate(self.outline.sections):
            if sec.id == section_id:
                before = sum(len(self.outline.sections[k].items) for k in range(s))
                return self._move_to(min(before, self._total - 1))
        return False

    def jump_to_position(self, flat: int) -> bool:
        if not self.has_content:
            return False
        return self._move_to(max(0, min(int(flat), self._total - 1)))

    def select_item(self, item_id: str) -> bool:
        """Table-of-contents selection by item id."""
        if not self.has_content:
            return False
        pos = locate_item(self.outline, item_id)
        if pos is None:
            return False
        return self._move_to(flat_position(self.outline, *pos))

    def _move_to(self, flat: int) -> bool:
        if flat == self._flat:
            return False
        left = self.current_item
        self._flat = flat
        if left is not None and self._on_leave is not None:
            try:
                self._on_leave(left)
            except Exception:
                logger.exception("Progress intent callback failed")
        return True

    def snapshot(self) -> Dict[str, Any]:
        item = self.current_item
        cur = self.cursor
        section = self.outline.sections[cur.section_index] if cur is not None else None
        return {
            "course_id": self.outline.course_id,
            "course_title": self.outline.title,
            "course_description": self.outline.description,
            "state": self.display_state,
            "section_index": cur.section_index if cur else None,
            "item_index": cur.item_index if cur else None,
            "section_id": section.id if section else None,
            "section_title": section.title if section else None,
            "flat_position": self.flat_position,
            "total_items": self._total,
            "percent_complete": self.percent_complete,
            "can_next": self.can_next,
            "can_previous": self.can_previous,
            "item": (
                {"id": item.id, "title": item.title, "type": item.type.value, "payload": item.payload}
                if item is not None
                else None
            ),
        }


__all__ = ["ContentNavigator", "NavigationCursor", "LeaveCallback"]
