"""
Locate a visible-text selection inside the raw markdown source.

Offsets captured against rendered text never agree with raw offsets, since
rendering drops emphasis markers, link targets and heading hashes. The
resolver finds every literal occurrence of the selected text and keeps the
one whose rendered prefix length is closest to the captured offset.
"""

import logging
from typing import List, Optional

from okidoki.config import log_event
from okidoki.models import FormatBoundaryInfo, MatchResult
from okidoki.services.markdown import visible_length

BOLD = "**"
ITALIC = "*"


def italic_delimiters(markdown: str) -> List[int]:
    """
    Positions of '*' characters that can open or close an italic span.

    Stars inside a '**' run belong to bold. A star with whitespace (or the
    text edge) on both sides, such as a '* ' list bullet, delimits nothing.
    """
    positions = []
    pos = markdown.find(ITALIC)
    while pos != -1:
        before = markdown[pos - 1] if pos > 0 else ""
        after = markdown[pos + 1] if pos + 1 < len(markdown) else ""
        if ITALIC not in (before, after):
            if not ((not before or before.isspace()) and (not after or after.isspace())):
                positions.append(pos)
        pos = markdown.find(ITALIC, pos + 1)
    return positions


def check_format_boundary(markdown: str, index: int) -> FormatBoundaryInfo:
    """
    Tell whether ``index`` lies inside a bold or italic span that is open at
    that point, and where the span's opening marker starts.
    """
    if index <= 0:
        return FormatBoundaryInfo()

    prefix = markdown[:index]

    if prefix.count(BOLD) % 2 == 1:
        return FormatBoundaryInfo(is_inside=True, marker=BOLD, start_pos=prefix.rfind(BOLD))

    opened = [pos for pos in italic_delimiters(markdown) if pos < index]
    if len(opened) % 2 == 1:
        start = opened[-1]
        # An opener is followed by non-whitespace
        if markdown[start + 1:start + 2].strip():
            return FormatBoundaryInfo(is_inside=True, marker=ITALIC, start_pos=start)

    return FormatBoundaryInfo()


def find_best_selection_match(
    markdown: str,
    selected_text: str,
    visible_start_offset: Optional[int],
) -> MatchResult:
    """
    Find the raw offset of ``selected_text`` that best matches a selection
    starting at ``visible_start_offset`` in the rendered text.

    Returns a MatchResult with index -1 when the text does not occur verbatim.
    """
    if not selected_text:
        return MatchResult(index=-1)

    target = visible_start_offset or 0
    best_index = -1
    best_score = None
    candidates = 0

    index = markdown.find(selected_text)
    while index != -1:
        candidates += 1
        score = abs(visible_length(markdown[:index]) - target)
        if best_score is None or score < best_score:
            best_index, best_score = index, score
        if score == 0:
            break
        index = markdown.find(selected_text, index + len(selected_text))

    if best_index == -1:
        log_event(logging.WARNING, "selection_match_not_found",
                  chars=len(selected_text), text_preview=selected_text[:50])
        return MatchResult(index=-1)

    boundary = check_format_boundary(markdown, best_index)
    log_event(logging.DEBUG, "selection_match_found",
              index=best_index, score=best_score, candidates=candidates,
              inside=boundary.marker or "-")
    return MatchResult(index=best_index, boundary=boundary)
