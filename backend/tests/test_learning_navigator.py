"""
ContentNavigator traversal properties, exhaustively over small outlines.
"""
from __future__ import annotations

import itertools

import pytest

from backend.learning.navigator import ContentNavigator
from backend.learning.outline import (
    ContentItem,
    ContentType,
    CourseOutline,
    Section,
    flat_position,
    flatten,
    position_at,
)
from backend.learning.percent import percent_of, round_half_up


def make_outline(*counts: int) -> CourseOutline:
    sections = []
    for s, count in enumerate(counts):
        items = tuple(
            ContentItem(id=f"s{s}i{i}", title=f"Item {s}.{i}", type=ContentType.TEXT, order=i) for i in range(count)
        )
        sections.append(Section(id=f"s{s}", title=f"Section {s}", order=s, items=items))
    return CourseOutline.build("course-1", sections)


# Every outline of up to four sections with 0..3 items each.
SMALL_OUTLINES = [c for n in range(0, 5) for c in itertools.product(range(4), repeat=n)]


def test_five_item_scenario():
    nav = ContentNavigator(make_outline(3, 2))
    for _ in range(4):
        assert nav.next() is True
    assert nav.flat_position == 4
    assert nav.percent_complete == 100
    assert nav.cursor.section_index == 1 and nav.cursor.item_index == 1


def test_half_up_rounding():
    assert round_half_up(12.5) == 13
    assert round_half_up(2.5) == 3
    assert round_half_up(0.49) == 0
    assert percent_of(1, 8) == 13
    assert percent_of(1, 0) == 0


@pytest.mark.parametrize("counts", SMALL_OUTLINES)
def test_next_strictly_increases_then_stays(counts):
    outline = make_outline(*counts)
    nav = ContentNavigator(outline)
    total = outline.total_items
    if total == 0:
        assert nav.percent_complete == 0
        assert nav.next() is False and nav.previous() is False
        assert nav.cursor is None
        return
    positions = [nav.flat_position]
    for _ in range(total + 2):
        nav.next()
        positions.append(nav.flat_position)
    assert positions[: total] == list(range(total))
    assert set(positions[total - 1:]) == {total - 1}


@pytest.mark.parametrize("counts", SMALL_OUTLINES)
def test_jump_equals_arriving_by_next(counts):
    outline = make_outline(*counts)
    for s, i in flatten(outline):
        walker = ContentNavigator(outline)
        for _ in range(flat_position(outline, s, i)):
            walker.next()
        jumper = ContentNavigator(outline)
        jumper.jump_to(outline.sections[s].id, outline.sections[s].items[i].id)
        selector = ContentNavigator(outline)
        selector.select_item(outline.sections[s].items[i].id)
        assert jumper.cursor == walker.cursor == selector.cursor
        assert jumper.percent_complete == walker.percent_complete == selector.percent_complete


@pytest.mark.parametrize("counts", SMALL_OUTLINES)
def test_previous_inverts_next(counts):
    outline = make_outline(*counts)
    total = outline.total_items
    for start in range(total):
        nav = ContentNavigator(outline)
        nav.jump_to_position(start)
        before = nav.cursor
        if nav.next():
            assert nav.previous() is True
            assert nav.cursor == before
        else:
            assert start == total - 1
        nav.jump_to_position(start)
        if nav.previous():
            assert nav.next() is True
            assert nav.cursor == before
        else:
            assert start == 0


@pytest.mark.parametrize("counts", SMALL_OUTLINES)
def test_position_mapping_round_trips(counts):
    outline = make_outline(*counts)
    for flat, (s, i) in enumerate(flatten(outline)):
        assert flat_position(outline, s, i) == flat
        assert position_at(outline, flat) == (s, i)
    with pytest.raises(IndexError):
        position_at(outline, outline.total_items)


def test_starts_on_first_non_empty_section_and_skips_empty_ones():
    nav = ContentNavigator(make_outline(0, 2, 0, 0, 1))
    assert nav.cursor.section_index == 1
    nav.next()
    nav.next()
    assert nav.cursor.section_index == 4
    nav.previous()
    assert (nav.cursor.section_index, nav.cursor.item_index) == (1, 1)


def test_out_of_range_requests_clamp():
    outline = make_outline(2, 3)
    nav = ContentNavigator(outline)
    assert nav.jump_to_position(99) is True
    assert nav.flat_position == 4
    nav.jump_to_position(-5)
    assert nav.flat_position == 0
    # Known section, unknown item: section start.
    assert nav.jump_to("s1", "missing") is True
    assert nav.flat_position == 2
    # Unknown section: unchanged.
    assert nav.jump_to("nope", "s1i0") is False
    assert nav.flat_position == 2
    assert nav.select_item("nope") is False


def test_failed_outline_is_no_content_state():
    nav = ContentNavigator(None)
    assert nav.display_state == "unavailable"
    assert nav.has_content is False
    assert nav.percent_complete == 0
    assert nav.next() is False and nav.previous() is False
    assert nav.jump_to("s0", "s0i0") is False
    assert nav.jump_to_position(3) is False
    assert nav.snapshot()["item"] is None
    assert ContentNavigator(make_outline()).display_state == "empty"


def test_unknown_course_is_not_found_state():
    nav = ContentNavigator(None, load_error="course_not_found")
    assert nav.display_state == "not_found"
    assert nav.has_content is False
    assert ContentNavigator(None, load_error="network_error").display_state == "unavailable"
    # A loaded outline wins over a stale error code.
    assert ContentNavigator(make_outline(1), load_error="course_not_found").display_state == "content"


def test_leaving_an_item_emits_one_intent():
    left = []
    nav = ContentNavigator(make_outline(2, 1), on_leave=left.append)
    nav.next()
    nav.next()
    nav.next()  # boundary: no-op
    nav.previous()
    nav.jump_to_position(1)  # already there: no-op
    assert [item.id for item in left] == ["s0i0", "s0i1", "s1i0"]


def test_intent_failure_never_blocks_navigation():
    def broken(_item):
        raise RuntimeError("queue full")

    nav = ContentNavigator(make_outline(3), on_leave=broken)
    assert nav.next() is True
    assert nav.flat_position == 1


def test_snapshot_describes_cursor():
    nav = ContentNavigator(make_outline(3, 2))
    nav.jump_to("s1")
    snap = nav.snapshot()
    assert snap["section_id"] == "s1"
    assert snap["item"]["id"] == "s1i0"
    assert snap["flat_position"] == 3
    assert snap["percent_complete"] == 80
    assert snap["can_next"] is True and snap["can_previous"] is True
