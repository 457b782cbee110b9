#!/usr/bin/env python3

# Copyright (c) 2026 textform contributors
# SPDX-License-Identifier: ISC

"""
Interactive demo of textform.

Draws two forms. Press a key to edit one of them:

  j   : sample form (four text boxes, one prefilled past its width)
  k   : password form
  u   : move the sample form up three rows
  ^C  : quit and print what was typed into each form

Inside a form, Tab/Shift-Tab move between boxes, Enter submits, and Esc
leaves the form without submitting. Ctrl-C doesn't work while a form has the
input.

With --timeout, the sample form gives the input back by itself after that
many seconds.

The terminal belongs to the forms, so log messages go to a file
(textform.log by default).
"""

import argparse
import logging
import queue

import rawterm
from formpoll import CancelToken, Dispatcher, SubmissionWatcher
from textform import Form, style_cursor, style_fill, style_helper

logger = logging.getLogger(__name__)


def add_sample_text_boxes(form):
    """
    Adds a few sample text boxes to 'form'.
    """
    common = dict(
        x=80,
        height=1,
        cursor_style=style_cursor("white").replace(blink=True),
        fill_style=style_fill("grey"),
        text_style=style_helper("black", "grey"),
        description_style=style_helper("white", "black"),
        show_description=True,
    )

    form.add_text_box(
        name="test1",
        description="What is the name of your favorite childhood friend?",
        default="Joe",
        tab_order=0,
        y=5,
        width=10,
        **common,
    )
    form.add_text_box(
        name="test2",
        description="Where did you grow up?",
        tab_order=2,
        y=7,
        width=20,
        **common,
    )
    form.add_text_box(
        name="test3",
        description="Age",
        default="super long value",
        tab_order=4,
        y=9,
        width=5,
        **common,
    )
    form.add_text_box(
        name="test4",
        description="Weight",
        tab_order=7,
        y=11,
        width=5,
        **common,
    )


def _add_password_box(form):
    form.add_text_box(
        name="password",
        description="Password: ",
        x=45,
        y=20,
        width=30,
        cursor_style=style_cursor("white"),
        fill_style=style_fill("green"),
        text_style=style_helper("red", "green"),
        description_style=style_helper("orange", "grey"),
        show_description=True,
        password=True,
    )


def _setup_logging(filename, level):
    handler = logging.FileHandler(filename, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level.upper())


def main():
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter, description=__doc__
    )

    parser.add_argument(
        "--log-file",
        default="textform.log",
        help="File to write log messages to (default: textform.log)",
    )

    parser.add_argument(
        "--log-level",
        default="info",
        choices=("debug", "info", "warning"),
        help="Log level (default: info)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Take the input back from the sample form after SECONDS",
    )

    args = parser.parse_args()

    _setup_logging(args.log_file, args.log_level)

    forms = rawterm.run(lambda term: _run_forms(term, args.timeout))
    if forms is None:
        # Interrupted before the forms were set up
        return

    for form in forms:
        print(f"Results from {form.name}:")
        for name, value in form.collect().items():
            print(f"\t{name}: '{value}'")


def _run_forms(term, timeout):
    # Sets up the forms and runs the main loop. Returns the forms once the
    # user quits.

    sample_form = Form(term, "SampleForm")
    add_sample_text_boxes(sample_form)

    custom_form = Form(term, "CustomForm")
    _add_password_box(custom_form)

    # Forms can be moved after the boxes have been added
    sample_form.shift_xy(3, 20)

    logger.info("starting forms on a %dx%d terminal", *term.size())
    sample_form.start()
    custom_form.start()

    submit = queue.Queue()
    watcher = SubmissionWatcher((sample_form, custom_form), submit).start()

    dispatcher = Dispatcher(term, submit)
    dispatcher.bind(
        "j",
        sample_form,
        cancel=(lambda: CancelToken.after(timeout)) if timeout else None,
    )
    dispatcher.bind("k", custom_form)
    dispatcher.bind_action("u", lambda: _move_up(sample_form, custom_form))

    try:
        dispatcher.run()
    finally:
        watcher.stop()

    return sample_form, custom_form


def _move_up(sample_form, custom_form):
    # clear_shift_xy() clears the whole surface, so the other form has to be
    # redrawn too
    sample_form.clear_shift_xy(0, -3)
    custom_form.start()


def _main():
    main()


if __name__ == "__main__":
    _main()
