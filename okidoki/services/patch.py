"""
Apply an AI replacement to a located span and keep the version history.
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from okidoki.config import log_event
from okidoki.exceptions import FormatReconciliationAmbiguity, SpanNotFoundError
from okidoki.models import DocumentVersion, MatchResult
from okidoki.services.resolver import ITALIC, italic_delimiters


def _find_closing_marker(markdown: str, end: int, marker: str) -> int:
    """Position of the marker closing the span at or after ``end``."""
    if marker == ITALIC:
        # A closer is preceded by non-whitespace; list bullets never close
        for pos in italic_delimiters(markdown):
            if pos >= end and pos > 0 and not markdown[pos - 1].isspace():
                return pos
        pos = -1
    else:
        pos = markdown.find(marker, end)
    if pos == -1:
        raise FormatReconciliationAmbiguity(f"No closing '{marker}' after the selection")
    return pos


def apply_replacement(
    markdown: str,
    match: MatchResult,
    selected_length: int,
    replacement: str,
) -> str:
    """
    Replace ``markdown[match.index:match.index + selected_length]``.

    When the span sits inside bold/italic, the replaced text becomes plain:
    the span is closed before the replacement (or its opening marker dropped
    when nothing precedes the selection) and reopened after it when formatted
    text still follows before the closing marker.
    """
    if not match.found or match.index + selected_length > len(markdown):
        raise SpanNotFoundError()

    start = match.index
    end = start + selected_length
    plain = markdown[:start] + replacement + markdown[end:]

    if not match.is_inside_formatting:
        return plain

    marker = match.format_marker
    after = markdown[end:]
    try:
        closing = _find_closing_marker(markdown, end, marker) - end
    except FormatReconciliationAmbiguity as e:
        log_event(logging.WARNING, "format_reconciliation_ambiguous",
                  marker=marker, index=start, error=str(e))
        return plain

    open_pos = match.boundary.start_pos
    leading = markdown[open_pos + len(marker):start]
    trailing = after[:closing]

    if leading.strip():
        head = markdown[:start] + marker
    else:
        head = markdown[:open_pos] + leading

    if trailing.strip():
        tail = marker + after
    else:
        tail = trailing + after[closing + len(marker):]

    log_event(logging.DEBUG, "replacement_split_formatting", marker=marker,
              closed_before=bool(leading.strip()), reopened=bool(trailing.strip()))
    return head + replacement + tail


# --- VERSION HISTORY ---

def _new_version(content: str) -> DocumentVersion:
    return DocumentVersion(content=content, timestamp=datetime.now().isoformat())


class VersionHistory:
    """
    Linear, append-only version list with a movable pointer.

    Committing after a rollback discards every version past the pointer.
    """

    def __init__(self, initial_content: str):
        self.versions: List[DocumentVersion] = [_new_version(initial_content)]
        self.current_index = 0

    @property
    def current(self) -> DocumentVersion:
        return self.versions[self.current_index]

    @property
    def content(self) -> str:
        return self.current.content

    @property
    def can_rollback(self) -> bool:
        return self.current_index > 0

    @property
    def can_roll_forward(self) -> bool:
        return self.current_index < len(self.versions) - 1

    def commit(self, content: str) -> DocumentVersion:
        del self.versions[self.current_index + 1:]
        version = _new_version(content)
        self.versions.append(version)
        self.current_index = len(self.versions) - 1
        log_event(logging.INFO, "version_committed",
                  index=self.current_index, total=len(self.versions), bytes=len(content))
        return version

    def observe(self, content: str) -> Optional[DocumentVersion]:
        """Record externally produced content if it differs from the current version."""
        if content and content != self.content:
            return self.commit(content)
        return None

    def rollback(self) -> bool:
        if not self.can_rollback:
            return False
        self.current_index -= 1
        log_event(logging.INFO, "version_rollback", index=self.current_index)
        return True

    def roll_forward(self) -> bool:
        if not self.can_roll_forward:
            return False
        self.current_index += 1
        log_event(logging.INFO, "version_roll_forward", index=self.current_index)
        return True

    def __len__(self) -> int:
        return len(self.versions)

    def to_dict(self) -> Dict:
        return {
            "current_index": self.current_index,
            "count": len(self.versions),
            "can_rollback": self.can_rollback,
            "can_roll_forward": self.can_roll_forward,
            "versions": [asdict(v) for v in self.versions],
        }
