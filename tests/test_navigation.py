"""Tests for per-rule match state and global ordering."""

import pytest

from smart_highlights.models import NavigationDirection, Selection, TextRange
from smart_highlights.navigation import RuleMatchState, selection_match_index, target_index

A = "file:///work/a.txt"
B = "file:///work/b.txt"


def _state():
    state = RuleMatchState()
    state.record(B, [TextRange(0, 3), TextRange(4, 7), TextRange(8, 11)])
    state.record(A, [TextRange(8, 11), TextRange(0, 3)])
    return state


def test_global_order_sorts_by_uri_then_offsets():
    """Order is a#1, a#2, b#1, b#2, b#3 and stable across calls."""
    state = _state()
    order = state.global_order()
    assert [(m.uri, m.start) for m in order] == [(A, 0), (A, 8), (B, 0), (B, 4), (B, 8)]
    assert state.global_order() == order
    assert state.total_matches() == 5


def test_uri_order_is_plain_string_order():
    state = RuleMatchState()
    state.record("file:///work/b.txt", [TextRange(0, 1)])
    state.record("file:///work/B.txt", [TextRange(0, 1)])
    assert [m.uri for m in state.global_order()] == ["file:///work/B.txt", "file:///work/b.txt"]


def test_record_without_matches_drops_stats():
    state = _state()
    state.record(A, [])
    assert state.stats_for(A) is None
    assert state.total_matches() == 3


def test_global_and_local_indices():
    state = _state()
    assert state.global_index_of(A, 2) == 2
    assert state.global_index_of(B, 1) == 3
    assert state.global_index_of(B, 4) is None
    assert state.global_index_of(B, None) is None
    assert state.global_index_of("file:///work/c.txt", 1) is None
    assert state.local_index_of(B, TextRange(4, 7)) == 2
    assert state.local_index_of(B, TextRange(4, 8)) is None


def test_reset_current_keeps_ranges():
    state = _state()
    state.stats_for(B).current_index = 2
    state.reset_current(B)
    assert state.stats_for(B).current_index is None
    assert state.stats_for(B).match_count == 3


def test_clear_resets_global_index():
    state = _state()
    state.global_index = 3
    state.clear()
    assert state.stats == {}
    assert state.global_index is None


def test_selection_match_index():
    ranges = [TextRange(0, 3), TextRange(8, 11)]
    assert selection_match_index(Selection(8, 11), ranges) == 2
    assert selection_match_index(Selection(7, 12), ranges) == 2
    assert selection_match_index(Selection(9, 12), ranges) is None
    assert selection_match_index(Selection.caret(3), ranges) == 1
    assert selection_match_index(Selection.caret(5), ranges) is None
    assert selection_match_index(None, ranges) is None
    assert selection_match_index(Selection.caret(0), []) is None


def test_target_index_wraps():
    assert target_index(None, 5, NavigationDirection.NEXT) == 0
    assert target_index(None, 5, "previous") == 4
    assert target_index(4, 5, "next") == 0
    assert target_index(0, 5, "previous") == 4
    assert target_index(1, 5, "next") == 2
    with pytest.raises(ValueError):
        target_index(None, 0, "next")
