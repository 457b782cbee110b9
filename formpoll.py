# Copyright (c) 2026 textform contributors
# SPDX-License-Identifier: ISC

"""
Overview
========

Keyboard handling for textform forms.

A program has one input source (the surface's poll_event()) and one loop
reading it, the Dispatcher. When the user presses a key bound to a form, the
dispatcher hands the input source to a PollCoordinator for that form and
waits. The coordinator reads keys on its own thread, edits the focused text
box, moves the focus on Tab/Shift-Tab, and hands the input back when the user
presses Enter (submit) or Esc (leave the form). Only one of them reads at any
time, so form state needs no locking.

Submitting publishes the form's name on a submission queue. A
SubmissionWatcher drains the queue on its own thread and calls
Form.collect() on the named form, so the coordinator never waits on whoever
consumes the results.

Cancellation
============

A delegation can be given a CancelToken, e.g. CancelToken.after(5) to take
the input back after five seconds. poll_event() blocks and has no way of
being interrupted, so the coordinator runs a watcher thread that waits for the
token and then posts a WAKE event into the surface. The blocked poll_event()
returns it, and the coordinator closes. WAKE events carry the coordinator
that requested them in Event.data. A WAKE that reaches anybody else (possible
when cancellation races with Enter/Esc) is ignored.

If the submission queue is bounded and nobody drains it, submitting blocks
until there's room. Run a SubmissionWatcher, or use an unbounded queue.
"""

import logging
import queue
import threading

from rawterm import Event, EventKind
from textform import FormNotStartedError

logger = logging.getLogger(__name__)

# PollCoordinator states
IDLE = "idle"
POLLING = "polling"
CLOSED = "closed"

# Messages for the cancellation watcher
_CANCEL = "cancel"
_STOP = "stop"


def _not_started(form):
    return FormNotStartedError(
        f"form {form.name!r} has no focus, call Form.start() before polling it"
    )


class CancelToken:
    """
    One-shot cancellation source. cancel() may be called from any thread,
    any number of times. Only the first call has an effect.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks = []
        self._timer = None

    def __repr__(self):
        return f"<CancelToken {'cancelled' if self._cancelled else 'armed'}>"

    @classmethod
    def after(cls, seconds):
        """
        Returns a token that cancels itself after 'seconds'
        """
        token = cls()
        token._timer = threading.Timer(seconds, token.cancel)
        token._timer.daemon = True
        token._timer.start()
        return token

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = self._callbacks
            self._callbacks = []

        for fn in callbacks:
            fn()

    def add_callback(self, fn):
        """
        Arranges for fn() to be called on cancellation. Calls it right away
        if the token is already cancelled.
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(fn)
                return
        fn()

    def remove_callback(self, fn):
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    def dispose(self):
        """
        Stops the timer of a token from after(), if it hasn't fired yet. The
        token stays uncancelled.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class PollCoordinator:
    """
    Reads events on behalf of one form until the user leaves it or the
    delegation is cancelled. Good for a single run.

    form:
      The started Form to edit

    done:
      threading.Event set exactly once, when the coordinator closes. A new
      one is created if None.

    submit:
      Queue (anything with put()) that receives the form's name on Enter.
      None disables publishing.

    cancel:
      Optional CancelToken that takes the input back early

    After closing, 'outcome' is "submitted", "escaped", "cancelled", or
    "failed" if reading or drawing raised (the exception is kept in
    'error').
    """

    def __init__(self, form, done=None, submit=None, cancel=None):
        self.form = form
        self.done = done if done is not None else threading.Event()
        self.submit = submit
        self.cancel = cancel

        self.state = IDLE
        self.outcome = None
        self.error = None

        # Inbox of the cancellation watcher
        self._signals = queue.Queue()
        self._watcher = None

    def __repr__(self):
        return f"<PollCoordinator for {self.form.name!r}, {self.state}>"

    def start(self):
        """
        Runs the coordinator on a new daemon thread and returns the thread.
        """
        thread = threading.Thread(
            target=self.run, name=f"poll-{self.form.name}", daemon=True
        )
        thread.start()
        return thread

    def run(self):
        """
        Polls until closed. Blocks the calling thread.
        """
        if self.state != IDLE:
            raise RuntimeError(f"{self!r} has already run")

        self.state = POLLING
        try:
            if self.cancel is not None:
                self._start_watcher()

            if self.form.focus is None:
                raise _not_started(self.form)

            logger.info("starting form poll for %r", self.form.name)
            self.form.focus.show_cursor()

            while self.state == POLLING:
                logger.debug("blocking on poll_event()")
                self._handle(self.form.surface.poll_event())

        except Exception as e:
            if self.state != CLOSED:
                self.error = e
                self._stop_watcher()
                self._finish("failed")
            raise

    def _handle(self, event):
        kind = event.kind
        focus = self.form.focus

        if kind is EventKind.CHAR:
            focus.add(event.ch)

        elif kind is EventKind.TAB:
            self.form.tab("forward")

        elif kind is EventKind.BACKTAB:
            self.form.tab("backward")

        elif kind is EventKind.BACKSPACE:
            focus.back()

        elif kind is EventKind.ENTER:
            if self.submit is not None:
                logger.info("submitting form %r", self.form.name)
                self.submit.put(self.form.name)
            focus.hide_cursor()
            self._stop_watcher()
            self._finish("submitted")

        elif kind is EventKind.ESCAPE:
            focus.hide_cursor()
            self._stop_watcher()
            self._finish("escaped")

        elif kind is EventKind.WAKE:
            if event.data is not self:
                logger.debug("ignoring stale wake event")
                return
            # The watcher exits by itself after posting the event
            focus.hide_cursor()
            self._finish("cancelled")

        else:
            logger.debug("ignoring %s in form %r", event.name, self.form.name)

    def _finish(self, outcome):
        self.state = CLOSED
        self.outcome = outcome
        logger.info("form poll for %r closed: %s", self.form.name, outcome)
        self.done.set()

    def _start_watcher(self):
        self.cancel.add_callback(self._on_cancel)
        self._watcher = threading.Thread(
            target=self._watch, name=f"cancel-{self.form.name}", daemon=True
        )
        self._watcher.start()

    def _stop_watcher(self):
        # Makes the watcher exit and waits for it. Any WAKE it posts while
        # racing with us is in the surface's queue by the time this returns.
        if self._watcher is None:
            return
        self._signals.put(_STOP)
        self._watcher.join()
        self._watcher = None

    def _on_cancel(self):
        self._signals.put(_CANCEL)

    def _watch(self):
        try:
            if self._signals.get() == _CANCEL:
                logger.debug("caught cancel, waking poll of %r", self.form.name)
                self.form.surface.post_event(Event(EventKind.WAKE, data=self))
            else:
                logger.debug("cancel watcher for %r stopped", self.form.name)
        finally:
            self.cancel.remove_callback(self._on_cancel)


class Dispatcher:
    """
    The main event loop. Owns the input source except while a form is
    delegated to.

    surface:
      The surface to read events from (normally a rawterm.Terminal)

    submit:
      Submission queue passed on to every PollCoordinator. None disables
      submission publishing.

    exit_char:
      Character that ends run(), in addition to Ctrl-C. None for Ctrl-C only.
      Exit keys only work here, not while a form has the input.
    """

    def __init__(self, surface, submit=None, exit_char=None):
        self.surface = surface
        self.submit = submit
        self.exit_char = exit_char

        # The coordinator holding the input, if any
        self.active = None

        self._forms = {}
        self._actions = {}

    def bind(self, ch, form, cancel=None):
        """
        Makes the key 'ch' hand the input to 'form'.

        cancel:
          Optional function returning a fresh CancelToken for each
          delegation, e.g. lambda: CancelToken.after(5)
        """
        self._actions.pop(ch, None)
        self._forms[ch] = (form, cancel)

    def bind_action(self, ch, fn):
        """
        Makes the key 'ch' call fn()
        """
        self._forms.pop(ch, None)
        self._actions[ch] = fn

    def delegate(self, form, cancel=None):
        """
        Hands the input to 'form' and blocks until it's handed back. Returns
        the closed PollCoordinator. Re-raises any error from the coordinator.
        """
        if form.focus is None:
            if cancel is not None:
                cancel.dispose()
            raise _not_started(form)

        done = threading.Event()
        coordinator = PollCoordinator(form, done, self.submit, cancel)

        logger.info("pausing main poll for form %r", form.name)
        self.active = coordinator
        thread = coordinator.start()
        try:
            done.wait()
            thread.join()
        finally:
            self.active = None
            if cancel is not None:
                cancel.dispose()
        logger.info("resuming main poll")

        if coordinator.error is not None:
            raise coordinator.error
        return coordinator

    def run(self):
        """
        Polls and dispatches events until Ctrl-C or exit_char
        """
        while True:
            event = self.surface.poll_event()
            kind = event.kind

            if kind is EventKind.INTERRUPT or (
                kind is EventKind.CHAR and event.ch == self.exit_char
            ):
                logger.info("exit requested with %s", event.name)
                return

            if kind is EventKind.RESIZE:
                self.surface.show()

            elif kind is EventKind.CHAR and event.ch in self._forms:
                form, cancel = self._forms[event.ch]
                self.delegate(form, cancel() if cancel else None)

            elif kind is EventKind.CHAR and event.ch in self._actions:
                self._actions[event.ch]()

            elif kind is EventKind.WAKE:
                logger.debug("ignoring stale wake event")

            else:
                logger.debug("detected stroke %s", event.name)


def _log_results(name, results):
    logger.info("form %r contents: %r", name, results)


class SubmissionWatcher:
    """
    Long-lived consumer of the submission queue. Calls
    handler(form_name, form.collect()) for each submitted form.

    forms:
      The forms that may be submitted. Looked up by name.

    submit:
      The submission queue. A new unbounded queue.Queue is created if None.

    handler:
      Called on the watcher thread for each submission. Defaults to logging
      the results.
    """

    def __init__(self, forms, submit=None, handler=None):
        self.forms = {form.name: form for form in forms}
        self.submit = submit if submit is not None else queue.Queue()
        self.handler = handler if handler is not None else _log_results
        self._thread = None

    def start(self):
        self._thread = threading.Thread(
            target=self._run, name="submission-watcher", daemon=True
        )
        self._thread.start()
        return self

    def stop(self):
        """
        Stops the watcher after it has handled everything submitted so far.
        """
        if self._thread is None:
            return
        self.submit.put(None)
        self._thread.join()
        self._thread = None

    def _run(self):
        while True:
            name = self.submit.get()
            if name is None:
                return

            logger.info("caught submission, collecting %r", name)
            form = self.forms.get(name)
            if form is None:
                logger.warning("submission for unknown form %r", name)
                continue

            try:
                self.handler(name, form.collect())
            except Exception:
                logger.exception("submission handler failed for %r", name)
