"""Tests for okidoki.services.patch: replacement and version history."""

import pytest

from okidoki.exceptions import SpanNotFoundError
from okidoki.models import FormatBoundaryInfo, MatchResult
from okidoki.services.markdown import markdown_to_visible
from okidoki.services.patch import VersionHistory, apply_replacement
from okidoki.services.resolver import find_best_selection_match


def replace_selection(markdown, selected, replacement):
    visible = markdown_to_visible(markdown)
    match = find_best_selection_match(markdown, selected, visible.index(selected))
    return apply_replacement(markdown, match, len(selected), replacement)


class TestApplyReplacement:
    def test_plain_replace(self):
        md = "The product targets small businesses."
        match = find_best_selection_match(md, "small businesses", 20)
        assert apply_replacement(md, match, len("small businesses"), "SMBs") == "The product targets SMBs."

    def test_start_of_bold_span_reopens_after(self):
        assert replace_selection("**hello world**", "hello", "hi") == "hi** world**"

    def test_whole_bold_span_drops_markers(self):
        assert replace_selection("**hello**", "hello", "hi") == "hi"

    def test_end_of_bold_span_closes_before(self):
        assert replace_selection("**say hello**", "hello", "hi") == "**say **hi"

    def test_middle_of_bold_span_closes_and_reopens(self):
        assert replace_selection("**a big deal**", "big", "huge") == "**a **huge** deal**"

    def test_unclosed_marker_falls_back_to_plain_replace(self):
        assert replace_selection("**hello world", "hello", "hi") == "**hi world"

    def test_end_of_italic_span(self):
        assert replace_selection("*hello world*", "world", "there") == "*hello *there"

    def test_surrounding_text_preserved(self):
        md = "Before **bold words** after"
        assert replace_selection(md, "bold", "strong") == "Before strong** words** after"

    def test_not_found_raises(self):
        with pytest.raises(SpanNotFoundError):
            apply_replacement("text", MatchResult(index=-1), 4, "x")

    def test_span_past_end_raises(self):
        with pytest.raises(SpanNotFoundError):
            apply_replacement("short", MatchResult(index=3), 10, "x")

    def test_star_bullets_are_not_italic(self):
        md = "* first item\n* second item\n"
        assert replace_selection(md, "first", "1st") == "* 1st item\n* second item\n"

    def test_star_bullet_after_italic_span(self):
        md = "Intro *note* here\n\n* alpha beta\n* gamma\n"
        assert replace_selection(md, "alpha", "A") == "Intro *note* here\n\n* A beta\n* gamma\n"

    def test_italic_inside_star_bullet(self):
        md = "* an *important* item\n* next\n"
        assert replace_selection(md, "important", "key") == "* an key item\n* next\n"

    def test_italic_closing_skips_bold_markers(self):
        md = "*one **two** three*"
        match = MatchResult(index=1, boundary=FormatBoundaryInfo(is_inside=True, marker="*", start_pos=0))
        assert apply_replacement(md, match, 3, "1") == "1* **two** three*"


class TestVersionHistory:
    def test_initial_state(self):
        history = VersionHistory("v0")
        assert len(history) == 1
        assert history.content == "v0"
        assert not history.can_rollback
        assert not history.can_roll_forward

    def test_bounds_are_no_ops(self):
        history = VersionHistory("v0")
        assert history.rollback() is False
        assert history.roll_forward() is False
        assert history.current_index == 0

    def test_rollback_and_forward(self):
        history = VersionHistory("v0")
        history.commit("v1")
        history.commit("v2")
        assert history.current_index == 2

        assert history.rollback()
        assert history.content == "v1"
        assert history.roll_forward()
        assert history.content == "v2"
        assert history.roll_forward() is False

    def test_commit_after_rollback_truncates(self):
        history = VersionHistory("v0")
        history.commit("v1")
        history.commit("v2")
        history.rollback()
        history.commit("v3")

        assert [v.content for v in history.versions] == ["v0", "v1", "v3"]
        assert history.current_index == 2
        assert not history.can_roll_forward

    def test_observe_ignores_identical_and_empty_content(self):
        history = VersionHistory("v0")
        assert history.observe("v0") is None
        assert history.observe("") is None
        assert len(history) == 1

        assert history.observe("edited").content == "edited"
        assert len(history) == 2

    def test_to_dict(self):
        history = VersionHistory("v0")
        history.commit("v1")
        data = history.to_dict()
        assert data["count"] == 2
        assert data["current_index"] == 1
        assert data["can_rollback"] is True
        assert data["versions"][0]["content"] == "v0"
        assert data["versions"][1]["timestamp"]
