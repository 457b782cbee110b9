# Copyright (c) 2026 textform contributors
# SPDX-License-Identifier: ISC
#
# Shared fixtures and helpers for the textform pytest suite.

import os
import queue
import sys
import threading
import time

import pytest

# Ensure the modules are importable from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from rawterm import Event, EventKind  # noqa: E402
from textform import Form, load_styles  # noqa: E402

# ---------------------------------------------------------------------------
# In-memory surface
# ---------------------------------------------------------------------------


class FakeTerminal:
    """Stands in for rawterm.Terminal.

    Cells live in a dict keyed by (x, y). Events are read from a queue that
    tests fill with feed(), and every poll_event() call is recorded along
    with the name of the thread that made it.
    """

    def __init__(self, width=120, height=40):
        self.width = width
        self.height = height
        self.cells = {}
        self.show_count = 0
        self.clear_count = 0

        # (thread name, event) for each event returned by poll_event()
        self.polls = []

        # Set while some thread is inside poll_event()
        self.waiting = threading.Event()

        self._events = queue.Queue()

    def set_content(self, x, y, ch, style=None):
        if 0 <= x < self.width and 0 <= y < self.height:
            self.cells[(x, y)] = (ch, style)

    def show(self):
        self.show_count += 1

    def clear(self):
        self.clear_count += 1
        self.cells.clear()

    def poll_event(self):
        self.waiting.set()
        # Time out instead of hanging the suite if a test runs out of input
        event = self._events.get(timeout=5)
        self.waiting.clear()
        self.polls.append((threading.current_thread().name, event))
        return event

    def post_event(self, event):
        self._events.put(event)

    def feed(self, *items):
        """Queue events. Strings are typed one character at a time, and
        EventKinds become events of that kind."""
        for item in items:
            if isinstance(item, str):
                for ch in item:
                    self.post_event(Event(EventKind.CHAR, ch))
            elif isinstance(item, EventKind):
                self.post_event(Event(item))
            else:
                self.post_event(item)

    def pending(self):
        return self._events.qsize()

    def row(self, x, y, n):
        """Return the n characters starting at (x, y)."""
        return "".join(self.cells.get((x + i, y), (" ", None))[0] for i in range(n))

    def style_at(self, x, y):
        return self.cells[(x, y)][1]

    def polled_kinds(self, thread_name=None):
        return [
            ev.kind
            for name, ev in self.polls
            if thread_name is None or name == thread_name
        ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep a user's TEXTFORM_STYLE from leaking into the tests."""
    monkeypatch.delenv("TEXTFORM_STYLE", raising=False)
    yield


@pytest.fixture
def term():
    return FakeTerminal()


@pytest.fixture
def styles():
    return load_styles("")


@pytest.fixture
def form(term, styles):
    """A form named "F" with no boxes yet."""
    return Form(term, "F", styles)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def add_boxes(form, *tab_orders, **kwargs):
    """Add one box per tab order, named "t<order>", on successive rows."""
    for row, order in enumerate(tab_orders):
        form.add_text_box(
            name=f"t{order}", tab_order=order, x=10, y=row * 2, width=8, **kwargs
        )


def wait_until(predicate, timeout=2.0):
    """Poll predicate() until it's true. Fails the test on timeout."""
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline, "timed out waiting for condition"
        time.sleep(0.005)
