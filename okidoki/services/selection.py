"""
Selection tracking: turns the browser's ephemeral text selection into an
application-owned snapshot that survives async AI calls.

The native selection is reached through a ``SelectionSource`` and the show
delay through a ``Scheduler``, so the tracker can run against a browser
report in production and against fakes with virtual time in tests.
"""

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

from okidoki.config import (
    log_event,
    MIN_SELECTION_LENGTH,
    ANCHOR_OFFSET_Y,
    SELECTION_SHOW_DELAY,
)
from okidoki.exceptions import SelectionCaptureError, ValidationError
from okidoki.models import Point, Rect, SelectionSnapshot, VisibleRange


# --- CAPABILITIES ---

class ActiveRange(Protocol):
    """A live selection range inside the rendered document."""

    def to_string(self) -> str:
        ...

    def client_rects(self) -> Sequence[Rect]:
        ...

    def is_within_container(self) -> bool:
        ...

    def prefix_length(self) -> int:
        """Rendered-text length from the container start to the range start."""
        ...


class SelectionSource(Protocol):
    def get_active_selection(self) -> Optional[ActiveRange]:
        ...

    def clear_active_selection(self) -> None:
        ...


class DelayedTask(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> DelayedTask:
        ...


class ThreadingScheduler:
    """Runs delayed callbacks on daemon timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> DelayedTask:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


# --- BROWSER-REPORTED SELECTION ---

@dataclass
class ReportedRange:
    """
    Selection as reported by the browser client.

    Payload keys: ``text``, ``rects`` (list of DOMRect-like objects),
    ``start`` (rendered-text offset of the range start) and ``inContainer``.
    Fields are validated lazily so a malformed report fails during capture.
    """
    payload: Dict[str, Any]

    def to_string(self) -> str:
        return str(self.payload.get("text") or "")

    def is_within_container(self) -> bool:
        return bool(self.payload.get("inContainer", True))

    def client_rects(self) -> Sequence[Rect]:
        raw = self.payload.get("rects") or []
        if not isinstance(raw, list):
            raise SelectionCaptureError("rects must be a list")
        try:
            return [Rect.from_dict(r) for r in raw]
        except ValidationError as e:
            raise SelectionCaptureError(e.message) from e

    def prefix_length(self) -> int:
        try:
            start = int(self.payload["start"])
        except (KeyError, TypeError, ValueError) as e:
            raise SelectionCaptureError("selection start offset missing or invalid") from e
        if start < 0:
            raise SelectionCaptureError("selection start offset is negative")
        return start


class ReportedSelectionSource:
    """Holds the browser's most recent native selection report."""

    def __init__(self):
        self._current: Optional[ReportedRange] = None
        self.native_cleared = False

    def report(self, payload: Optional[Dict[str, Any]]):
        self._current = ReportedRange(payload) if payload else None
        self.native_cleared = False

    def get_active_selection(self) -> Optional[ActiveRange]:
        return self._current

    def clear_active_selection(self) -> None:
        self._current = None
        # Client drops its native selection on the next response
        self.native_cleared = True


# --- TRACKER ---

class PointerTarget(str, Enum):
    """Where a document-level pointer-down landed."""
    TOOLBAR = "toolbar"      # floating toolbar / confirm panel (data-toolbar)
    CONTAINER = "container"  # the rendered document itself
    OUTSIDE = "outside"


class SelectionTracker:
    """Debounced capture of a selection into a lockable snapshot."""

    def __init__(
        self,
        source: SelectionSource,
        scheduler: Optional[Scheduler] = None,
        delay: float = SELECTION_SHOW_DELAY,
    ):
        self.source = source
        self.scheduler = scheduler or ThreadingScheduler()
        self.delay = delay
        self.snapshot = SelectionSnapshot()
        self.locked = False
        self._show_task: Optional[DelayedTask] = None
        self._show_generation = 0
        self._lock = threading.RLock()

    @property
    def has_selection(self) -> bool:
        return not self.snapshot.is_empty

    # --- debounce ---

    def _cancel_show_task(self):
        # Invalidates a callback that already started but is waiting on the lock
        self._show_generation += 1
        if self._show_task is not None:
            self._show_task.cancel()
            self._show_task = None

    def _schedule_capture(self):
        with self._lock:
            self._cancel_show_task()
            generation = self._show_generation
            self._show_task = self.scheduler.call_later(
                self.delay, partial(self._run_scheduled_capture, generation)
            )

    def _run_scheduled_capture(self, generation: int):
        with self._lock:
            if generation != self._show_generation:
                return
            self._show_task = None
            self.capture_selection()

    @property
    def capture_pending(self) -> bool:
        return self._show_task is not None

    # --- input events ---

    def on_pointer_down(self):
        """User started (re)selecting: cancel any pending capture."""
        with self._lock:
            self._cancel_show_task()

    def on_pointer_up(self):
        self._schedule_capture()

    def on_key_up(self, key: str):
        if key == "Shift" or key.startswith("Arrow"):
            self._schedule_capture()

    def on_document_pointer_down(self, target: PointerTarget) -> bool:
        """
        Document-level pointer-down. Returns True when it cleared the
        selection as an outside click.
        """
        if target is PointerTarget.TOOLBAR:
            return False
        self.on_pointer_down()
        if target is PointerTarget.CONTAINER:
            return False
        with self._lock:
            if self.locked or not self.has_selection:
                return False
            self.clear_selection()
        log_event(logging.DEBUG, "selection_cleared_outside_click")
        return True

    # --- snapshot ---

    def capture_selection(self) -> bool:
        """Read the native selection into the snapshot. Returns True on capture."""
        with self._lock:
            if self.locked:
                return False
            try:
                active = self.source.get_active_selection()
                if active is None:
                    return False
                text = active.to_string().strip()
                if len(text) < MIN_SELECTION_LENGTH:
                    return False
                if not active.is_within_container():
                    return False
                rects = list(active.client_rects())
                if not rects:
                    return False
                start = active.prefix_length()
            except Exception as e:
                log_event(logging.DEBUG, "selection_capture_failed", error=str(e))
                return False

            min_left = min(r.left for r in rects)
            max_right = max(r.right for r in rects)
            max_bottom = max(r.bottom for r in rects)

            self.snapshot = SelectionSnapshot(
                visible_text=text,
                visible_range=VisibleRange(start=start, end=start + len(text)),
                anchor_position=Point(x=(min_left + max_right) / 2, y=max_bottom + ANCHOR_OFFSET_Y),
                rects=rects,
            )
        log_event(logging.DEBUG, "selection_captured", chars=len(text), start=start, lines=len(rects))
        return True

    def lock_selection(self):
        """Freeze the snapshot and release the native selection."""
        with self._lock:
            self.locked = True
            self._cancel_show_task()
            try:
                self.source.clear_active_selection()
            except Exception as e:
                log_event(logging.DEBUG, "native_selection_clear_failed", error=str(e))
        log_event(logging.DEBUG, "selection_locked", chars=len(self.snapshot.visible_text))

    def clear_selection(self):
        """Drop the snapshot and unlock."""
        with self._lock:
            self._cancel_show_task()
            self.snapshot = SelectionSnapshot()
            self.locked = False

    def update_position(self, position: Point):
        """Move the anchor (e.g. after scrolling) without touching the rest."""
        with self._lock:
            if self.has_selection:
                self.snapshot = replace(self.snapshot, anchor_position=position)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "selection": self.snapshot.to_dict(),
                "locked": self.locked,
                "has_selection": self.has_selection,
                "capture_pending": self.capture_pending,
            }
