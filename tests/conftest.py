"""Shared fixtures for OkiDoki tests."""

from typing import List, Optional

import pytest

from okidoki import config, state
from okidoki.models import Rect
from okidoki.services.improvement import ImprovementSession
from okidoki.services.selection import SelectionTracker


# ── Virtual time ─────────────────────────────────────────────────────


class ManualTask:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when the test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self.tasks: List[ManualTask] = []

    def call_later(self, delay, callback):
        task = ManualTask(self.now + delay, callback)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for t in self.tasks if not t.cancelled)

    def advance(self, seconds: float):
        self.now += seconds
        due = [t for t in self.tasks if not t.cancelled and t.due <= self.now]
        self.tasks = [t for t in self.tasks if not t.cancelled and t not in due]
        for task in due:
            task.callback()


# ── Fake selection ───────────────────────────────────────────────────


class FakeRange:
    def __init__(self, text, start=0, rects=None, inside=True, error=None):
        self.text = text
        self.start = start
        self.rects = rects if rects is not None else [Rect(left=10, top=100, right=110, bottom=120)]
        self.inside = inside
        self.error = error

    def to_string(self):
        return self.text

    def client_rects(self):
        if self.error:
            raise self.error
        return self.rects

    def is_within_container(self):
        return self.inside

    def prefix_length(self):
        return self.start


class FakeSelectionSource:
    def __init__(self):
        self.active: Optional[FakeRange] = None
        self.clear_calls = 0

    def get_active_selection(self):
        return self.active

    def clear_active_selection(self):
        self.active = None
        self.clear_calls += 1


# ── Fake LLM ─────────────────────────────────────────────────────────


class FakeGenerator:
    """Stands in for stream_completion."""

    def __init__(self, chunks=(), error=None):
        self.chunks = list(chunks)
        self.error = error
        self.calls = []

    def __call__(self, messages, settings=None, template=None, on_chunk=None,
                 cancel_event=None, timeout=None):
        self.calls.append({
            "messages": messages,
            "settings": settings,
            "template": template,
            "timeout": timeout,
            "cancel_event": cancel_event,
        })
        if self.error:
            raise self.error
        for chunk in self.chunks:
            if on_chunk:
                on_chunk(chunk)
        return "".join(self.chunks)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Point document storage at a temp dir and reset in-memory state."""
    docs = tmp_path / "documents"
    docs.mkdir()
    monkeypatch.setattr(config, "DOCUMENTS_DIR", docs)
    state.SESSIONS.clear()
    state.CONNECTED_CLIENTS.clear()
    yield docs
    state.SESSIONS.clear()
    state.CONNECTED_CLIENTS.clear()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def source():
    return FakeSelectionSource()


@pytest.fixture
def tracker(source, scheduler):
    return SelectionTracker(source, scheduler=scheduler, delay=1.0)


@pytest.fixture
def make_session(tracker, source):
    """Build an ImprovementSession and a helper to select text in it."""

    def _make(content, generator=None):
        generator = generator or FakeGenerator(["improved"])
        session = ImprovementSession("doc", content, tracker=tracker, generate=generator)

        def select(text, start):
            source.active = FakeRange(text, start=start)
            assert tracker.capture_selection()

        session.select = select
        return session

    return _make
