"""Tests for okidoki.services.resolver."""

from okidoki.services.markdown import markdown_to_visible
from okidoki.services.resolver import check_format_boundary, find_best_selection_match, italic_delimiters

DUPLICATES = (
    "# Goals\n\n"
    "The **product** targets small businesses.\n\n"
    "- Grow [revenue](https://example.com) for small businesses\n"
)
PHRASE = "small businesses"


class TestFindBestSelectionMatch:
    def test_second_occurrence_resolved_by_offset(self):
        visible = markdown_to_visible(DUPLICATES)
        result = find_best_selection_match(DUPLICATES, PHRASE, visible.rindex(PHRASE))
        assert result.index == DUPLICATES.rindex(PHRASE)
        assert DUPLICATES[result.index:result.index + len(PHRASE)] == PHRASE

    def test_first_occurrence_resolved_by_offset(self):
        visible = markdown_to_visible(DUPLICATES)
        result = find_best_selection_match(DUPLICATES, PHRASE, visible.index(PHRASE))
        assert result.index == DUPLICATES.index(PHRASE)

    def test_closest_wins_when_offset_is_approximate(self):
        visible = markdown_to_visible(DUPLICATES)
        result = find_best_selection_match(DUPLICATES, PHRASE, visible.rindex(PHRASE) - 3)
        assert result.index == DUPLICATES.rindex(PHRASE)

    def test_missing_offset_treated_as_zero(self):
        result = find_best_selection_match(DUPLICATES, PHRASE, None)
        assert result.index == DUPLICATES.index(PHRASE)

    def test_not_found(self):
        result = find_best_selection_match(DUPLICATES, "enterprise customers", 10)
        assert result.index == -1
        assert not result.found
        assert not result.is_inside_formatting

    def test_empty_selection_not_found(self):
        assert find_best_selection_match(DUPLICATES, "", 0).index == -1

    def test_selection_inside_bold_reports_boundary(self):
        md = "Intro **hello world** end"
        visible = markdown_to_visible(md)
        result = find_best_selection_match(md, "world", visible.index("world"))
        assert result.index == md.index("world")
        assert result.is_inside_formatting
        assert result.format_marker == "**"
        assert result.boundary.start_pos == 6

    def test_plain_selection_has_no_boundary(self):
        md = "The product targets small businesses."
        result = find_best_selection_match(md, PHRASE, 20)
        assert result.index == 20
        assert result.format_marker == ""


class TestCheckFormatBoundary:
    def test_inside_bold(self):
        info = check_format_boundary("**hello world**", 2)
        assert info.is_inside
        assert info.marker == "**"
        assert info.start_pos == 0

    def test_after_closed_bold(self):
        assert not check_format_boundary("**a** b", 6).is_inside

    def test_inside_italic(self):
        info = check_format_boundary("*hello world*", 7)
        assert info.is_inside
        assert info.marker == "*"
        assert info.start_pos == 0

    def test_italic_after_closed_bold(self):
        md = "**bold** and *it here*"
        info = check_format_boundary(md, md.index("here"))
        assert info.marker == "*"
        assert info.start_pos == md.index("*it")

    def test_star_bullet_is_not_italic(self):
        md = "* first item\n* second item\n"
        assert not check_format_boundary(md, md.index("first")).is_inside
        assert not check_format_boundary(md, md.index("second")).is_inside

    def test_star_bullet_after_italic_span(self):
        md = "Intro *note* here\n\n* alpha beta\n* gamma\n"
        assert not check_format_boundary(md, md.index("alpha")).is_inside

    def test_italic_inside_star_bullet(self):
        md = "* an *important* item"
        info = check_format_boundary(md, md.index("important"))
        assert info.marker == "*"
        assert info.start_pos == md.index("*important")

    def test_start_of_document(self):
        info = check_format_boundary("**bold**", 0)
        assert not info.is_inside
        assert info.start_pos == -1

    def test_plain_text(self):
        assert not check_format_boundary("nothing special here", 8).is_inside


class TestItalicDelimiters:
    def test_skips_bullets_bold_and_free_stars(self):
        md = "* one *two* **three** 4 * 5\n  * nested"
        assert italic_delimiters(md) == [md.index("*two"), md.index("* **")]

    def test_star_at_text_edges(self):
        assert italic_delimiters("*a*") == [0, 2]
