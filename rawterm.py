#!/usr/bin/env python3

# Copyright (c) 2026 textform contributors
# SPDX-License-Identifier: ISC

"""
rawterm -- pure-Python terminal surface for textform

A cell-addressable screen buffer on top of a raw-mode terminal: set the
content of single cells, flush the changes with frame diffing, and block on
the next input event. Events can also be injected from other threads with
post_event(), which is the only way to wake a reader blocked in poll_event().

Zero external dependencies. Uses only Python stdlib: termios, select,
signal, shutil, os, sys, codecs, unicodedata on Unix; ctypes and msvcrt on
Windows.

Platform support:
  - Unix (Linux, macOS): termios raw-ish mode, poll(2)-based input with a
    self-pipe for injected events and SIGWINCH
  - Windows 10 build 1511+: VT100 output and input via SetConsoleMode

Minimum: Python 3.7+, any VT100-capable terminal.
"""

import atexit
import codecs
import collections
import enum
import os
import re
import shutil
import signal
import sys
import threading
import unicodedata

_IS_WINDOWS = os.name == "nt"

if not _IS_WINDOWS:
    import select
    import termios


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------


class Color:
    """Terminal color: named constant, 256-color index, or 24-bit RGB."""

    __slots__ = ("_kind", "_value")

    # kind: "default", "named", "index", "rgb"
    def __init__(self, kind, value):
        self._kind = kind
        self._value = value

    DEFAULT = None  # assigned below

    BLACK = None
    RED = None
    GREEN = None
    YELLOW = None
    BLUE = None
    MAGENTA = None
    CYAN = None
    WHITE = None

    BRIGHT_BLACK = None
    BRIGHT_RED = None
    BRIGHT_GREEN = None
    BRIGHT_YELLOW = None
    BRIGHT_BLUE = None
    BRIGHT_MAGENTA = None
    BRIGHT_CYAN = None
    BRIGHT_WHITE = None

    @staticmethod
    def rgb(r, g, b):
        """Create a 24-bit RGB color."""
        return Color("rgb", (r, g, b))

    @staticmethod
    def index(n):
        """Create a color from xterm 256-color palette index."""
        return Color("index", n)

    def _sgr(self, base, bright_base, extended):
        if self._kind == "default":
            return str(base + 9)
        if self._kind == "named":
            idx = self._value
            if idx < 8:
                return str(base + idx)
            return str(bright_base + idx - 8)
        if self._kind == "index":
            return f"{extended};5;{self._value}"
        r, g, b = self._value
        return f"{extended};2;{r};{g};{b}"

    def _sgr_fg(self):
        return self._sgr(30, 90, 38)

    def _sgr_bg(self):
        return self._sgr(40, 100, 48)

    def __eq__(self, other):
        if not isinstance(other, Color):
            return NotImplemented
        return self._kind == other._kind and self._value == other._value

    def __hash__(self):
        return hash((self._kind, self._value))

    _NAMED_REPRS = {}

    def __repr__(self):
        if self._kind == "default":
            return "Color.DEFAULT"
        if self._kind == "named":
            return Color._NAMED_REPRS.get(self._value, f"Color('named', {self._value})")
        if self._kind == "index":
            return f"Color.index({self._value})"
        return "Color.rgb({},{},{})".format(*self._value)


Color.DEFAULT = Color("default", None)
for _i, _attr in enumerate(
    ("BLACK", "RED", "GREEN", "YELLOW", "BLUE", "MAGENTA", "CYAN", "WHITE")
):
    setattr(Color, _attr, Color("named", _i))
    setattr(Color, "BRIGHT_" + _attr, Color("named", _i + 8))
    Color._NAMED_REPRS[_i] = "Color." + _attr
    Color._NAMED_REPRS[_i + 8] = "Color.BRIGHT_" + _attr
del _i, _attr

NAMED_COLORS = {
    "black": Color.BLACK,
    "red": Color.RED,
    "green": Color.GREEN,
    "yellow": Color.YELLOW,
    "blue": Color.BLUE,
    "magenta": Color.MAGENTA,
    "cyan": Color.CYAN,
    "white": Color.WHITE,
    "purple": Color.MAGENTA,
    "brightblack": Color.BRIGHT_BLACK,
    "brightred": Color.BRIGHT_RED,
    "brightgreen": Color.BRIGHT_GREEN,
    "brightyellow": Color.BRIGHT_YELLOW,
    "brightblue": Color.BRIGHT_BLUE,
    "brightmagenta": Color.BRIGHT_MAGENTA,
    "brightcyan": Color.BRIGHT_CYAN,
    "brightwhite": Color.BRIGHT_WHITE,
    "brightpurple": Color.BRIGHT_MAGENTA,
    # Common aliases from the X11 color names
    "grey": Color.BRIGHT_BLACK,
    "gray": Color.BRIGHT_BLACK,
    "silver": Color.WHITE,
    "orange": Color.index(214),
}


def get_color(name):
    """
    Resolves a color name to a Color.

    Accepts the names in NAMED_COLORS (case-insensitive), #RRGGBB, and a
    palette index 0..255 in any base int() understands with base 0. "",
    "default" and "reset" give the terminal default color. Raises ValueError
    for anything else.
    """
    name = name.strip().lower()

    if name in ("", "default", "reset"):
        return Color.DEFAULT

    if re.match("^#[a-f0-9]{6}$", name):
        return Color.rgb(int(name[1:3], 16), int(name[3:5], 16), int(name[5:7], 16))

    if name in NAMED_COLORS:
        return NAMED_COLORS[name]

    try:
        num = int(name, 0)
    except ValueError:
        raise ValueError(f"'{name}' is neither a known color nor a number")

    if not 0 <= num <= 255:
        raise ValueError(f"color {name} outside range 0..255")

    return Color.index(num)


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------


class Style:
    """Immutable style combining foreground, background, and attributes."""

    __slots__ = ("fg", "bg", "bold", "standout", "underline", "blink", "_sgr_cache")

    def __init__(
        self, fg=None, bg=None, bold=False, standout=False, underline=False, blink=False
    ):
        self.fg = fg if fg is not None else Color.DEFAULT
        self.bg = bg if bg is not None else Color.DEFAULT
        self.bold = bold
        self.standout = standout
        self.underline = underline
        self.blink = blink
        self._sgr_cache = None

    def _key(self):
        return (self.fg, self.bg, self.bold, self.standout, self.underline, self.blink)

    def replace(self, **changes):
        """Return a copy of the style with some fields changed."""
        fields = dict(
            zip(("fg", "bg", "bold", "standout", "underline", "blink"), self._key())
        )
        fields.update(changes)
        return Style(**fields)

    def sgr(self):
        """Return the SGR escape sequence string for this style."""
        if self._sgr_cache is not None:
            return self._sgr_cache

        parts = ["0", self.fg._sgr_fg(), self.bg._sgr_bg()]
        if self.bold:
            parts.append("1")
        if self.underline:
            parts.append("4")
        if self.blink:
            parts.append("5")
        if self.standout:
            parts.append("7")

        self._sgr_cache = "\x1b[{}m".format(";".join(parts))
        return self._sgr_cache

    def __eq__(self, other):
        if not isinstance(other, Style):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        parts = []
        if self.fg != Color.DEFAULT:
            parts.append(f"fg={self.fg}")
        if self.bg != Color.DEFAULT:
            parts.append(f"bg={self.bg}")
        for attr in ("bold", "standout", "underline", "blink"):
            if getattr(self, attr):
                parts.append(attr)
        return "Style({})".format(", ".join(parts))


STYLE_DEFAULT = Style()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventKind(enum.Enum):
    """Closed set of event kinds returned by Terminal.poll_event()."""

    CHAR = "char"
    TAB = "tab"
    BACKTAB = "backtab"
    BACKSPACE = "backspace"
    ENTER = "enter"
    ESCAPE = "escape"
    INTERRUPT = "interrupt"
    RESIZE = "resize"
    WAKE = "wake"
    OTHER = "other"


class Event:
    """
    One input event.

    kind:
      An EventKind

    ch:
      The typed character for EventKind.CHAR, "" otherwise

    name:
      Printable name of the key, e.g. "a", "Tab", "Up" or "Ctrl-A"

    data:
      Arbitrary payload for injected events. Wake events carry their owner
      here so that readers can tell their own wake-ups from stale ones.
    """

    __slots__ = ("kind", "ch", "name", "data")

    def __init__(self, kind, ch="", name=None, data=None):
        self.kind = kind
        self.ch = ch
        self.name = name if name is not None else (ch or kind.name.capitalize())
        self.data = data

    def __repr__(self):
        if self.kind is EventKind.CHAR:
            return f"<Event char {self.ch!r}>"
        return f"<Event {self.kind.value} {self.name}>"


# ---------------------------------------------------------------------------
# Character width
# ---------------------------------------------------------------------------


def _char_width(ch):
    """Return the display width of a character in terminal cells.

    - ASCII printable (0x20-0x7E): 1 cell (fast path)
    - East Asian Wide/Fullwidth: 2 cells
    - Combining marks, control chars: 0 cells
    - Everything else: 1 cell
    """
    o = ord(ch)

    if 0x20 <= o <= 0x7E:
        return 1

    if o < 0x20 or o == 0x7F:
        return 0

    if unicodedata.east_asian_width(ch) in ("W", "F"):
        return 2

    if unicodedata.category(ch).startswith("M"):
        return 0

    return 1


# ---------------------------------------------------------------------------
# Key decoding
# ---------------------------------------------------------------------------

# Escape sequences, with several entries per key to handle terminal variants
# (xterm, rxvt, tmux, application mode)
_ESCAPE_SEQUENCES = {
    "\x1b[A": "Up",
    "\x1bOA": "Up",
    "\x1b[B": "Down",
    "\x1bOB": "Down",
    "\x1b[C": "Right",
    "\x1bOC": "Right",
    "\x1b[D": "Left",
    "\x1bOD": "Left",
    "\x1b[5~": "PgUp",
    "\x1b[6~": "PgDn",
    "\x1b[H": "Home",
    "\x1bOH": "Home",
    "\x1b[1~": "Home",
    "\x1b[7~": "Home",
    "\x1b[F": "End",
    "\x1bOF": "End",
    "\x1b[4~": "End",
    "\x1b[8~": "End",
    "\x1b[2~": "Insert",
    "\x1b[3~": "Delete",
    "\x1b[Z": "Backtab",
    "\x1bOP": "F1",
    "\x1bOQ": "F2",
    "\x1bOR": "F3",
    "\x1bOS": "F4",
    "\x1b[11~": "F1",
    "\x1b[12~": "F2",
    "\x1b[13~": "F3",
    "\x1b[14~": "F4",
    "\x1b[15~": "F5",
    "\x1b[17~": "F6",
    "\x1b[18~": "F7",
    "\x1b[19~": "F8",
    "\x1b[20~": "F9",
    "\x1b[21~": "F10",
    "\x1b[23~": "F11",
    "\x1b[24~": "F12",
}

# xterm modifier parameter, as in ESC [ 1 ; 5 A for Ctrl-Up
_MODIFIERS = {
    2: "Shift",
    3: "Alt",
    4: "Shift-Alt",
    5: "Ctrl",
    6: "Ctrl-Shift",
    7: "Ctrl-Alt",
    8: "Ctrl-Shift-Alt",
}


def _build_trie(sequences):
    """Build a trie (nested dict) from escape sequence table."""
    root = {}
    for seq, key in sequences.items():
        node = root
        for ch in seq[:-1]:
            node = node.setdefault(ch, {})
        node[seq[-1]] = key
    return root


_ESCAPE_TRIE = _build_trie(_ESCAPE_SEQUENCES)


def _sequence_name(seq):
    # Name for a complete CSI/SS3 sequence that isn't in _ESCAPE_SEQUENCES,
    # e.g. "Shift-Up" for ESC [ 1 ; 2 A. Falls back to the raw sequence.
    params = seq[2:-1].split(";")
    final = seq[-1]

    if len(params) == 2 and params[1].isdigit():
        if final == "~":
            base = _ESCAPE_SEQUENCES.get("\x1b[" + params[0] + "~")
        else:
            base = _ESCAPE_SEQUENCES.get("\x1b[" + final) or _ESCAPE_SEQUENCES.get(
                "\x1bO" + final
            )
        mod = _MODIFIERS.get(int(params[1]))
        if base and mod:
            return mod + "-" + base

    return "Esc" + seq[1:]


class KeyParser:
    """
    Turns decoded input characters into Events.

    Escape sequences are matched against _ESCAPE_TRIE. CSI (ESC [) and SS3
    (ESC O) sequences missing from the table are read up to their final byte
    (0x40-0x7E) and returned as a single OTHER event, so that unknown keys
    never leak their bytes as typed characters. Only a lone ESC, or ESC
    followed by something that can't start a sequence, gives ESCAPE.

    A lone ESC can't be told apart from the start of a sequence until the
    input goes quiet, so the reader calls flush() once no more input arrives
    within a short timeout.
    """

    def __init__(self):
        self._esc_buf = []
        self._esc_node = None

    @property
    def pending(self):
        """True while a partial escape sequence is buffered."""
        return bool(self._esc_buf)

    def feed(self, ch):
        """Feed one character, returning a (possibly empty) list of Events."""
        if not self._esc_buf:
            return self._feed_char(ch)

        if self._esc_node is not None and ch in self._esc_node:
            val = self._esc_node[ch]
            if isinstance(val, dict):
                self._esc_buf.append(ch)
                self._esc_node = val
                return []

            self._reset()
            if val == "Backtab":
                return [Event(EventKind.BACKTAB)]
            return [Event(EventKind.OTHER, name=val)]

        if len(self._esc_buf) == 1:
            # ESC followed by something that doesn't start a sequence. Flush
            # first, since _feed_char() may start a new sequence when ch is
            # ESC.
            events = self.flush()
            events.extend(self._feed_char(ch))
            return events

        return self._feed_unknown(ch)

    def flush(self):
        """
        Give up on a partial escape sequence. A lone ESC is returned as
        ESCAPE, and a truncated sequence as an OTHER event.
        """
        if not self._esc_buf:
            return []

        seq = "".join(self._esc_buf)
        self._reset()
        if seq == "\x1b":
            return [Event(EventKind.ESCAPE)]
        return [Event(EventKind.OTHER, name="Esc" + seq[1:])]

    def _reset(self):
        self._esc_buf = []
        self._esc_node = None

    def _feed_unknown(self, ch):
        # Inside a CSI/SS3 sequence that left the trie
        o = ord(ch)

        if 0x40 <= o <= 0x7E:
            seq = "".join(self._esc_buf) + ch
            self._reset()
            return [Event(EventKind.OTHER, name=_sequence_name(seq))]

        if 0x20 <= o <= 0x3F:
            # Parameter or intermediate byte
            self._esc_buf.append(ch)
            self._esc_node = None
            return []

        # Not part of a sequence. The buffered part becomes one OTHER event.
        events = self.flush()
        events.extend(self._feed_char(ch))
        return events

    def _feed_char(self, ch):
        if ch == "\x1b":
            self._esc_buf = [ch]
            self._esc_node = _ESCAPE_TRIE[ch]
            return []

        if ch in ("\x7f", "\x08"):
            return [Event(EventKind.BACKSPACE)]

        # Enter arrives as CR in raw mode (ICRNL is cleared), and as LF from
        # some Windows paths
        if ch in ("\r", "\n"):
            return [Event(EventKind.ENTER)]

        if ch == "\t":
            return [Event(EventKind.TAB)]

        if ch == "\x03":
            return [Event(EventKind.INTERRUPT, name="Ctrl-C")]

        if ord(ch) < 0x20:
            return [Event(EventKind.OTHER, name="Ctrl-" + chr(ord(ch) + 0x40))]

        return [Event(EventKind.CHAR, ch)]


# ---------------------------------------------------------------------------
# Terminal
# ---------------------------------------------------------------------------


class Terminal:
    """Cell buffer, frame-diffing output, and event input for one terminal."""

    def __init__(self):
        if not _IS_WINDOWS:
            if not os.isatty(sys.stdin.fileno()):
                raise RuntimeError("stdin is not a terminal")
            if not os.isatty(sys.stdout.fileno()):
                raise RuntimeError("stdout is not a terminal")

        self._closed = False
        self._resize_pending = False
        self._prev_frame = None

        # Decoded keys waiting to be returned, and events injected by
        # post_event(). The latter is filled from other threads.
        self._keys = collections.deque()
        self._posted = collections.deque()
        self._posted_lock = threading.Lock()
        self._parser = KeyParser()

        sz = shutil.get_terminal_size()
        self._width = sz.columns
        self._height = sz.lines
        self._cells = self._make_cells(self._height, self._width)

        if _IS_WINDOWS:
            self._init_windows()
        else:
            self._init_unix()

        # Enter alternate screen and hide the hardware cursor. Fields draw
        # their own cursor cell.
        self._write_raw("\x1b[?1049h\x1b[?25l")
        self._flush()

    @staticmethod
    def _make_cells(height, width):
        default = (" ", STYLE_DEFAULT)
        return [[default] * width for _ in range(height)]

    @staticmethod
    def _set_raw():
        """No echo, no canonical mode, no signals. Ctrl-C arrives as a key."""
        fd = sys.stdin.fileno()
        new = termios.tcgetattr(fd)
        new[3] &= ~(termios.ICANON | termios.ECHO | termios.IEXTEN | termios.ISIG)
        new[1] &= ~(
            termios.IXON | termios.IXOFF | termios.ICRNL | termios.INLCR | termios.IGNCR
        )
        new[6][termios.VMIN] = 1
        new[6][termios.VTIME] = 0
        termios.tcsetattr(fd, termios.TCSANOW, new)

    def _init_unix(self):
        self._old_termios = termios.tcgetattr(sys.stdin.fileno())
        self._set_raw()

        self._decoder = codecs.getincrementaldecoder("utf-8")("replace")

        # Self-pipe: post_event() and SIGWINCH write a byte here to wake a
        # reader blocked in poll()
        self._wake_r, self._wake_w = os.pipe()
        os.set_blocking(self._wake_r, False)
        os.set_blocking(self._wake_w, False)

        self._old_sigwinch = signal.getsignal(signal.SIGWINCH)
        signal.signal(signal.SIGWINCH, self._sigwinch_handler)

        self._poller = select.poll()
        self._poller.register(sys.stdin.fileno(), select.POLLIN)
        self._poller.register(self._wake_r, select.POLLIN)

        # Used for the escape disambiguation timeout, where only stdin matters
        self._stdin_poller = select.poll()
        self._stdin_poller.register(sys.stdin.fileno(), select.POLLIN)

    def _init_windows(self):
        import ctypes
        from ctypes import wintypes

        kernel32 = ctypes.windll.kernel32

        STD_INPUT_HANDLE = -10
        STD_OUTPUT_HANDLE = -11
        self._stdin_handle = kernel32.GetStdHandle(STD_INPUT_HANDLE)
        self._stdout_handle = kernel32.GetStdHandle(STD_OUTPUT_HANDLE)

        self._old_out_mode = wintypes.DWORD()
        kernel32.GetConsoleMode(self._stdout_handle, ctypes.byref(self._old_out_mode))
        self._old_in_mode = wintypes.DWORD()
        kernel32.GetConsoleMode(self._stdin_handle, ctypes.byref(self._old_in_mode))

        ENABLE_VIRTUAL_TERMINAL_PROCESSING = 0x0004
        kernel32.SetConsoleMode(
            self._stdout_handle,
            self._old_out_mode.value | ENABLE_VIRTUAL_TERMINAL_PROCESSING,
        )

        # VT100 input, with ECHO, LINE and PROCESSED input cleared
        ENABLE_VIRTUAL_TERMINAL_INPUT = 0x0200
        new_in = (self._old_in_mode.value | ENABLE_VIRTUAL_TERMINAL_INPUT) & ~(
            0x0004 | 0x0002 | 0x0001
        )
        if not kernel32.SetConsoleMode(self._stdin_handle, new_in):
            raise RuntimeError("console does not support VT100 input")

        self._kernel32 = kernel32

    def close(self):
        """Restore terminal state. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        self._write_raw("\x1b[?25h\x1b[?1049l\x1b[0m")
        self._flush()

        if _IS_WINDOWS:
            self._kernel32.SetConsoleMode(self._stdout_handle, self._old_out_mode)
            self._kernel32.SetConsoleMode(self._stdin_handle, self._old_in_mode)
        else:
            termios.tcsetattr(sys.stdin.fileno(), termios.TCSANOW, self._old_termios)
            signal.signal(signal.SIGWINCH, self._old_sigwinch)
            os.close(self._wake_r)
            os.close(self._wake_w)

    def size(self):
        """Return (width, height) in cells."""
        return self._width, self._height

    # --- Output ---

    def set_content(self, x, y, ch, style=None):
        """Set the cell at column x, row y. Out-of-bounds writes are ignored."""
        if style is None:
            style = STYLE_DEFAULT
        if y < 0 or y >= self._height or x < 0 or x >= self._width:
            return

        w = _char_width(ch)
        if w == 0 or x + w > self._width:
            return

        row = self._cells[y]
        row[x] = (ch, style)
        if w == 2:
            row[x + 1] = ("", style)

    def clear(self):
        """Blank the whole buffer. Takes effect on the next show()."""
        self._cells = self._make_cells(self._height, self._width)

    def show(self):
        """Flush the buffer, emitting ANSI only for cells that changed."""
        buf = []
        prev = self._prev_frame

        last_style = None
        last_row = -1
        last_col = -1

        for row in range(self._height):
            cells = self._cells[row]
            for col in range(self._width):
                cell = cells[col]
                if prev and prev[row][col] == cell:
                    continue

                ch, style = cell
                if ch == "":
                    # Right half of a wide character
                    continue

                if row != last_row or col != last_col:
                    buf.append(f"\x1b[{row + 1};{col + 1}H")

                if style != last_style:
                    buf.append(style.sgr())
                    last_style = style

                buf.append(ch)
                last_row = row
                last_col = col + _char_width(ch)

        if buf:
            self._write_raw("".join(buf))
            self._flush()

        self._prev_frame = [row[:] for row in self._cells]

    def _write_raw(self, s):
        try:
            sys.stdout.buffer.write(s.encode("utf-8"))
        except OSError:
            pass

    def _flush(self):
        try:
            fd = sys.stdout.fileno()
            was_blocking = os.get_blocking(fd)
            if not was_blocking:
                os.set_blocking(fd, True)
            try:
                sys.stdout.buffer.flush()
            finally:
                if not was_blocking:
                    os.set_blocking(fd, False)
        except OSError:
            pass

    # --- Resize ---

    def _sigwinch_handler(self, signum, frame):
        # Don't resize mid-render. Just flag it and wake the reader.
        self._resize_pending = True
        self._wake()

    def _check_resize(self):
        if not self._resize_pending:
            return False

        self._resize_pending = False
        sz = shutil.get_terminal_size()
        old = self._cells
        self._width = sz.columns
        self._height = sz.lines
        self._cells = self._make_cells(self._height, self._width)
        for y, row in enumerate(old[: self._height]):
            self._cells[y][: len(row)] = row[: self._width]

        # Terminal emulators may garble the alternate screen on resize, so
        # repaint everything from a clean slate on the next show()
        self._prev_frame = None
        self._write_raw("\x1b[2J")
        self._flush()
        return True

    # --- Input ---

    def post_event(self, event):
        """
        Queue an event for poll_event() and wake a blocked reader. Safe to
        call from any thread.
        """
        with self._posted_lock:
            self._posted.append(event)
        self._wake()

    def _wake(self):
        if _IS_WINDOWS:
            # The Windows reader polls the queue
            return
        try:
            os.write(self._wake_w, b"\0")
        except BlockingIOError:
            # Pipe full, so a wake-up is already pending
            pass

    def _next_event(self):
        with self._posted_lock:
            if self._posted:
                return self._posted.popleft()
        if self._keys:
            return self._keys.popleft()
        return None

    def poll_event(self):
        """
        Block until the next event and return it.

        Injected events are returned before buffered keystrokes. The read
        can't be interrupted by any other means than post_event() (or a
        resize).
        """
        while True:
            event = self._next_event()
            if event is not None:
                return event

            if self._check_resize():
                return Event(EventKind.RESIZE)

            if _IS_WINDOWS:
                self._read_windows()
            else:
                self._read_unix()

    def _read_unix(self):
        fd = sys.stdin.fileno()

        for ready_fd, _ in self._poller.poll():
            if ready_fd == self._wake_r:
                try:
                    os.read(self._wake_r, 512)
                except BlockingIOError:
                    pass
                continue

            data = os.read(fd, 1024)
            if not data:
                raise EOFError("terminal input closed")
            for ch in self._decoder.decode(data):
                self._keys.extend(self._parser.feed(ch))

        # Wait briefly for the rest of a partial escape sequence
        if self._parser.pending and not self._stdin_poller.poll(25):
            self._keys.extend(self._parser.flush())

    def _read_windows(self):
        import msvcrt
        import time

        if msvcrt.kbhit():
            self._keys.extend(self._parser.feed(msvcrt.getwch()))
        elif self._parser.pending:
            self._keys.extend(self._parser.flush())
        else:
            time.sleep(0.01)


# ---------------------------------------------------------------------------
# Safe entry point
# ---------------------------------------------------------------------------


def run(fn):
    """Safe wrapper: init terminal, call fn(terminal), restore on exit.

    Catches KeyboardInterrupt and always restores terminal state.
    """
    term = None
    try:
        term = Terminal()
        atexit.register(lambda: term.close() if term else None)
        return fn(term)
    except KeyboardInterrupt:
        pass
    finally:
        if term:
            term.close()
