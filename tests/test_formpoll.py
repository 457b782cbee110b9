# Copyright (c) 2026 textform contributors
# SPDX-License-Identifier: ISC
#
# Input handoff between the dispatcher and form poll coordinators:
# keystroke routing, submission, escape, cancellation, and the guarantee that
# only one reader polls the surface at a time.

import logging
import queue
import threading

import pytest

from conftest import add_boxes, wait_until
from formpoll import (
    CLOSED,
    IDLE,
    CancelToken,
    Dispatcher,
    PollCoordinator,
    SubmissionWatcher,
)
from rawterm import Event, EventKind
from textform import FormNotStartedError


class CountingEvent(threading.Event):
    """threading.Event that counts set() calls"""

    def __init__(self):
        super().__init__()
        self.set_calls = 0

    def set(self):
        self.set_calls += 1
        super().set()


@pytest.fixture
def started_form(form):
    add_boxes(form, 0, 1)
    form.start()
    return form


def drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


#
# PollCoordinator
#


def test_keys_routed_to_focused_box(term, started_form):
    term.feed(
        "ab",
        EventKind.TAB,
        "cd",
        EventKind.BACKSPACE,
        EventKind.BACKTAB,
        "z",
        EventKind.ESCAPE,
    )
    PollCoordinator(started_form).run()
    assert started_form.collect() == {"t0": "abz", "t1": "c"}


def test_enter_submits_once(term, started_form):
    submit = queue.Queue()
    done = CountingEvent()
    term.feed("hi", EventKind.ENTER)

    coordinator = PollCoordinator(started_form, done, submit)
    assert coordinator.state == IDLE
    coordinator.run()

    assert drain(submit) == ["F"]
    assert done.set_calls == 1
    assert coordinator.state == CLOSED
    assert coordinator.outcome == "submitted"
    # Cursor left hidden
    focus = started_form.focus
    assert term.style_at(focus.cx, focus.cy) == focus.fill_style


def test_enter_stops_reading(term, started_form):
    term.feed("a", EventKind.ENTER, "b")
    PollCoordinator(started_form).run()
    assert term.pending() == 1
    assert started_form.focus.value == "a"


def test_escape_closes_without_submitting(term, started_form):
    submit = queue.Queue()
    done = CountingEvent()
    term.feed("x", EventKind.ESCAPE)

    coordinator = PollCoordinator(started_form, done, submit)
    coordinator.run()

    assert drain(submit) == []
    assert done.set_calls == 1
    assert coordinator.outcome == "escaped"
    # Edits are kept
    assert started_form.focus.value == "x"


def test_other_events_ignored(term, started_form):
    term.feed(
        Event(EventKind.OTHER, name="Up"),
        EventKind.RESIZE,
        EventKind.INTERRUPT,
        EventKind.ESCAPE,
    )
    coordinator = PollCoordinator(started_form)
    coordinator.run()
    assert coordinator.outcome == "escaped"
    assert started_form.collect() == {"t0": "", "t1": ""}


def test_run_twice_raises(term, started_form):
    term.feed(EventKind.ESCAPE)
    coordinator = PollCoordinator(started_form)
    coordinator.run()
    with pytest.raises(RuntimeError):
        coordinator.run()


def test_cancel_while_polling(term, started_form):
    token = CancelToken()
    done = CountingEvent()
    coordinator = PollCoordinator(started_form, done, cancel=token)

    thread = coordinator.start()
    assert term.waiting.wait(2)
    token.cancel()

    assert done.wait(2)
    thread.join(2)
    assert not thread.is_alive()

    assert coordinator.state == CLOSED
    assert coordinator.outcome == "cancelled"
    assert done.set_calls == 1
    assert term.polled_kinds() == [EventKind.WAKE]
    assert term.polls[0][1].data is coordinator


def test_already_cancelled_token(term, started_form):
    token = CancelToken()
    token.cancel()
    coordinator = PollCoordinator(started_form, cancel=token)
    coordinator.run()
    assert coordinator.outcome == "cancelled"
    assert term.polled_kinds() == [EventKind.WAKE]


def test_stale_wake_ignored(term, started_form):
    term.feed(Event(EventKind.WAKE, data=object()), "x", EventKind.ENTER)
    coordinator = PollCoordinator(started_form)
    coordinator.run()
    assert coordinator.outcome == "submitted"
    assert started_form.focus.value == "x"


def test_watcher_stopped_on_enter(term, started_form):
    token = CancelToken()
    term.feed(EventKind.ENTER)
    coordinator = PollCoordinator(started_form, cancel=token)
    coordinator.run()

    assert coordinator._watcher is None
    assert token._callbacks == []

    # Cancelling afterwards wakes nobody
    token.cancel()
    assert term.pending() == 0


def test_surface_error_closes_coordinator(started_form):
    class BrokenSurface:
        def poll_event(self):
            raise OSError("terminal went away")

    started_form._surface = BrokenSurface()
    done = CountingEvent()
    coordinator = PollCoordinator(started_form, done)

    with pytest.raises(OSError):
        coordinator.run()

    assert coordinator.outcome == "failed"
    assert isinstance(coordinator.error, OSError)
    assert done.set_calls == 1


#
# CancelToken
#


def test_cancel_token_callbacks():
    token = CancelToken()
    calls = []
    token.add_callback(lambda: calls.append("a"))
    removed = lambda: calls.append("removed")  # noqa: E731
    token.add_callback(removed)
    token.remove_callback(removed)

    token.cancel()
    token.cancel()
    assert calls == ["a"]
    assert token.cancelled

    # Late callbacks run right away
    token.add_callback(lambda: calls.append("late"))
    assert calls == ["a", "late"]


def test_cancel_token_after():
    token = CancelToken.after(0.01)
    fired = threading.Event()
    token.add_callback(fired.set)
    assert fired.wait(2)
    assert token.cancelled


def test_disposed_token_never_fires():
    token = CancelToken.after(0.05)
    fired = threading.Event()
    token.add_callback(fired.set)
    token.dispose()
    assert not fired.wait(0.3)
    assert not token.cancelled

    # Disposing twice, or a token without a timer, is harmless
    token.dispose()
    CancelToken().dispose()


#
# Dispatcher
#


def test_no_dispatcher_polls_during_delegation(term, started_form):
    submit = queue.Queue()
    dispatcher = Dispatcher(term, submit)
    dispatcher.bind("j", started_form)

    term.feed("z", "j", "ab", EventKind.ENTER, EventKind.INTERRUPT)
    dispatcher.run()

    main = threading.current_thread().name
    readers = [name for name, _ in term.polls]
    assert readers == [main, main, "poll-F", "poll-F", "poll-F", main]
    assert drain(submit) == ["F"]
    assert started_form.focus.value == "ab"
    assert dispatcher.active is None


def test_dispatcher_cancels_delegation(term, started_form):
    token = CancelToken()
    dispatcher = Dispatcher(term)
    dispatcher.bind("j", started_form, cancel=lambda: token)

    term.feed("j")
    thread = threading.Thread(target=dispatcher.run, name="dispatcher", daemon=True)
    thread.start()

    wait_until(lambda: dispatcher.active is not None)
    assert term.waiting.wait(2)
    token.cancel()

    wait_until(lambda: dispatcher.active is None)
    term.feed(EventKind.INTERRUPT)
    thread.join(2)
    assert not thread.is_alive()

    assert term.polls[1][0] == "poll-F"
    assert term.polled_kinds("poll-F") == [EventKind.WAKE]
    assert term.polled_kinds("dispatcher") == [EventKind.CHAR, EventKind.INTERRUPT]


def test_fresh_cancel_token_per_delegation(term, started_form):
    tokens = []

    def new_token():
        tokens.append(CancelToken())
        return tokens[-1]

    dispatcher = Dispatcher(term)
    dispatcher.bind("j", started_form, cancel=new_token)
    term.feed("j", EventKind.ESCAPE, "j", EventKind.ESCAPE, EventKind.INTERRUPT)
    dispatcher.run()

    assert len(tokens) == 2
    assert tokens[0] is not tokens[1]


def test_delegate_returns_coordinator(term, started_form):
    term.feed("q", EventKind.ESCAPE)
    coordinator = Dispatcher(term).delegate(started_form)
    assert coordinator.outcome == "escaped"
    assert started_form.focus.value == "q"


def test_dispatcher_actions_and_exit_char(term, started_form):
    calls = []
    dispatcher = Dispatcher(term, exit_char="q")
    dispatcher.bind_action("u", lambda: calls.append("u"))

    term.feed("uxu", EventKind.RESIZE, Event(EventKind.WAKE), "q", "u")
    shows = term.show_count
    dispatcher.run()

    assert calls == ["u", "u"]
    assert term.show_count == shows + 1
    # Nothing read after the exit key
    assert term.pending() == 1


def test_rebinding_key(term, started_form):
    calls = []
    dispatcher = Dispatcher(term)
    dispatcher.bind("j", started_form)
    dispatcher.bind_action("j", lambda: calls.append("j"))

    term.feed("j", EventKind.INTERRUPT)
    dispatcher.run()
    assert calls == ["j"]


#
# SubmissionWatcher
#


def test_submission_watcher_collects(started_form, caplog):
    results = []
    watcher = SubmissionWatcher(
        [started_form], handler=lambda name, res: results.append((name, res))
    )
    watcher.start()
    started_form.fields["t1"].add("v")

    with caplog.at_level(logging.WARNING, logger="formpoll"):
        watcher.submit.put("F")
        watcher.submit.put("nosuchform")
        watcher.stop()

    assert results == [("F", {"t0": "", "t1": "v"})]
    assert "nosuchform" in caplog.text


def test_submission_watcher_survives_handler_error(started_form):
    results = []

    def handler(name, res):
        results.append(name)
        if len(results) == 1:
            raise ValueError("boom")

    watcher = SubmissionWatcher([started_form], handler=handler).start()
    watcher.submit.put("F")
    watcher.submit.put("F")
    watcher.stop()
    assert results == ["F", "F"]


def test_end_to_end_submission(term, started_form):
    results = []
    watcher = SubmissionWatcher(
        [started_form], handler=lambda name, res: results.append(res)
    ).start()
    dispatcher = Dispatcher(term, watcher.submit)
    dispatcher.bind("j", started_form)

    term.feed("j", "joe", EventKind.TAB, "42", EventKind.ENTER, EventKind.INTERRUPT)
    dispatcher.run()
    watcher.stop()

    assert results == [{"t0": "joe", "t1": "42"}]


def test_delegation_stops_cancel_timer(term, started_form):
    token = CancelToken.after(60)
    timer = token._timer
    term.feed(EventKind.ESCAPE)

    coordinator = Dispatcher(term).delegate(started_form, token)
    assert coordinator.outcome == "escaped"

    timer.join(2)
    assert not timer.is_alive()
    assert not token.cancelled


def test_delegate_unstarted_form(term, form):
    add_boxes(form, 0)
    token = CancelToken.after(60)
    timer = token._timer

    with pytest.raises(FormNotStartedError, match="Form.start"):
        Dispatcher(term).delegate(form, token)

    # Nothing was spawned and nothing read
    assert term.polls == []
    timer.join(2)
    assert not timer.is_alive()


def test_coordinator_on_unstarted_form_fails(term, form):
    add_boxes(form, 0)
    done = CountingEvent()
    coordinator = PollCoordinator(form, done)

    with pytest.raises(FormNotStartedError):
        coordinator.run()

    assert coordinator.state == CLOSED
    assert coordinator.outcome == "failed"
    assert isinstance(coordinator.error, FormNotStartedError)
    assert done.set_calls == 1
    assert term.polls == []
