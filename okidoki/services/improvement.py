"""
Selection improvement flow for one document view.

Idle -> Selected -> Requesting (locked) -> Reviewing -> Accepted | Declined -> Idle
"""

import logging
import threading
from typing import Callable, Dict, Optional

from okidoki.config import log_event, IMPROVEMENT_TIMEOUT
from okidoki.exceptions import (
    GenerationCancelled,
    GenerationError,
    ImprovementStateError,
    SpanNotFoundError,
)
from okidoki.models import DocumentVersion, ImprovementState, QuickAction
from okidoki.state import SESSIONS, SESSIONS_LOCK
from okidoki.services.ai import build_custom_prompt, build_quick_action_prompt, stream_completion
from okidoki.services.documents import read_document
from okidoki.services.markdown import strip_formatting
from okidoki.services.patch import VersionHistory, apply_replacement
from okidoki.services.resolver import find_best_selection_match
from okidoki.services.selection import ReportedSelectionSource, SelectionTracker

ChunkCallback = Callable[[str], None]


class ImprovementSession:
    """Owns the selection tracker, version history and pending suggestion of a document."""

    def __init__(
        self,
        document_id: str,
        content: str,
        tracker: Optional[SelectionTracker] = None,
        generate: Optional[Callable[..., str]] = None,
    ):
        self.document_id = document_id
        self.tracker = tracker or SelectionTracker(ReportedSelectionSource())
        self.source = self.tracker.source
        self.history = VersionHistory(content)
        self.generate = generate or stream_completion
        self.suggestion: Optional[str] = None
        self._phase: Optional[ImprovementState] = None
        self._cancel_event: Optional[threading.Event] = None
        self._lock = threading.RLock()

    @property
    def state(self) -> ImprovementState:
        if self._phase is not None:
            return self._phase
        return ImprovementState.SELECTED if self.tracker.has_selection else ImprovementState.IDLE

    @property
    def content(self) -> str:
        return self.history.content

    def _reset(self):
        self._phase = None
        self.suggestion = None
        self._cancel_event = None
        self.tracker.clear_selection()

    # --- requesting ---

    def request_quick_action(self, action: QuickAction, on_chunk: Optional[ChunkCallback] = None) -> str:
        return self.request_improvement(
            build_quick_action_prompt(action, self.tracker.snapshot.visible_text), on_chunk=on_chunk
        )

    def request_custom(self, instruction: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        if not instruction or not instruction.strip():
            raise ImprovementStateError("Enter an instruction for the AI")
        return self.request_improvement(
            build_custom_prompt(instruction, self.tracker.snapshot.visible_text), on_chunk=on_chunk
        )

    def request_improvement(self, prompt: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        """Lock the selection and stream a suggestion for it."""
        with self._lock:
            if self._phase is not None:
                raise ImprovementStateError()
            if not self.tracker.has_selection:
                raise ImprovementStateError("Select some text to improve first")
            self.tracker.lock_selection()
            self._phase = ImprovementState.REQUESTING
            self.suggestion = None
            cancel_event = self._cancel_event = threading.Event()

        log_event(logging.INFO, "improvement_requested", document=self.document_id,
                  chars=len(self.tracker.snapshot.visible_text))
        try:
            text = self.generate(
                messages=[{"role": "user", "content": prompt}],
                on_chunk=on_chunk,
                cancel_event=cancel_event,
                timeout=IMPROVEMENT_TIMEOUT,
            )
        except Exception as e:
            with self._lock:
                if self._cancel_event is cancel_event:
                    self._reset()
            if isinstance(e, GenerationCancelled):
                log_event(logging.INFO, "improvement_cancelled", document=self.document_id)
            else:
                log_event(logging.ERROR, "improvement_failed", document=self.document_id, error=str(e))
            if isinstance(e, GenerationError):
                raise
            raise GenerationError(f"AI request failed: {e}") from e

        with self._lock:
            if self._cancel_event is not cancel_event or cancel_event.is_set():
                raise GenerationCancelled()
            if not strip_formatting(text or ""):
                self._reset()
                log_event(logging.WARNING, "improvement_empty", document=self.document_id)
                raise GenerationError("AI returned no usable text")
            self._phase = ImprovementState.REVIEWING
            self.suggestion = text.strip()

        log_event(logging.INFO, "improvement_ready", document=self.document_id, chars=len(self.suggestion))
        return self.suggestion

    # --- reviewing ---

    def accept(self) -> DocumentVersion:
        """Patch the suggestion into the current content and commit a version."""
        with self._lock:
            if self._phase is not ImprovementState.REVIEWING:
                raise ImprovementStateError("No suggestion to accept")

            snapshot = self.tracker.snapshot
            markdown = self.history.content
            visible_start = snapshot.visible_range.start if snapshot.visible_range else 0
            match = find_best_selection_match(markdown, snapshot.visible_text, visible_start)
            cleaned = strip_formatting(self.suggestion)

            try:
                new_content = apply_replacement(markdown, match, len(snapshot.visible_text), cleaned)
            except SpanNotFoundError:
                self._reset()
                log_event(logging.WARNING, "improvement_span_not_found", document=self.document_id)
                raise

            version = self.history.commit(new_content)
            self._reset()

        log_event(logging.INFO, "improvement_accepted", document=self.document_id,
                  index=match.index, formatting=match.format_marker or "-")
        return version

    def decline(self) -> ImprovementState:
        """Discard the suggestion, or abort the in-flight request. Returns the prior state."""
        with self._lock:
            previous = self.state
            if previous is ImprovementState.REQUESTING and self._cancel_event is not None:
                self._cancel_event.set()
            self._reset()
        log_event(logging.INFO, "improvement_declined", document=self.document_id, previous=previous.value)
        return previous

    def escape(self) -> ImprovementState:
        """Escape key: decline while reviewing, clear the selection otherwise."""
        with self._lock:
            current = self.state
            if current is ImprovementState.REVIEWING:
                return self.decline()
            if current is ImprovementState.SELECTED:
                self.tracker.clear_selection()
            return current

    # --- versions ---

    def _require_idle(self):
        if self._phase is not None:
            raise ImprovementStateError("Finish the pending improvement first")

    def rollback(self) -> bool:
        with self._lock:
            self._require_idle()
            return self.history.rollback()

    def roll_forward(self) -> bool:
        with self._lock:
            self._require_idle()
            return self.history.roll_forward()

    def observe_content(self, content: str) -> Optional[DocumentVersion]:
        with self._lock:
            return self.history.observe(content)

    def to_dict(self) -> Dict:
        with self._lock:
            history = self.history.to_dict()
            history.pop("versions")
            return {
                "document_id": self.document_id,
                "state": self.state.value,
                "suggestion": self.suggestion,
                "original": self.tracker.snapshot.visible_text or None,
                "native_cleared": getattr(self.source, "native_cleared", False),
                "history": history,
                **self.tracker.to_dict(),
            }


# --- SESSION REGISTRY ---

def get_session(document_id: str) -> ImprovementSession:
    """Get or create the improvement session for a document."""
    with SESSIONS_LOCK:
        session = SESSIONS.get(document_id)
        if session is None:
            session = ImprovementSession(document_id, read_document(document_id))
            SESSIONS[document_id] = session
            log_event(logging.INFO, "session_created", document=document_id)
        return session


def drop_session(document_id: str):
    with SESSIONS_LOCK:
        if SESSIONS.pop(document_id, None) is not None:
            log_event(logging.INFO, "session_dropped", document=document_id)
