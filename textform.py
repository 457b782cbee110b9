# Copyright (c) 2026 textform contributors
# SPDX-License-Identifier: ISC

"""
Overview
========

Single-line text boxes grouped into forms, drawn on a character-cell
surface (see rawterm.Terminal).

A Form owns a set of named TextFields. Fields are added with
Form.add_text_box(), after which Form.start() draws them and picks the
initially focused field. Editing happens through the focused field (add() and
back()), and Form.tab() moves the focus along the tab order. Form.collect()
returns the text of every field.

Keyboard handling lives in formpoll, which hands control of the input source
to a form while it's being edited.

Text that doesn't fit in a box scrolls: the box then shows the last 'width'
characters, with the cursor pinned at the right edge. Nothing indicates that
text has scrolled off to the left.


Styles
======

Every text box has four styles: cursor, fill (the empty box), text, and
description (the label drawn to the left of the box). Styles not given in the
TextBoxSpec come from the form's style table, which starts out as the
'default' template and can be customized with the TEXTFORM_STYLE environment
variable, using the same syntax as menuconfig's MENUCONFIG_STYLE:

    TEXTFORM_STYLE="cursor=fg:black,bg:yellow fill=bg:blue text=fg:white,bg:blue"

Each assignment is '<element>=<attribute>,<attribute>,...', where an attribute
is fg:COLOR, bg:COLOR, bold, underline, standout or blink. COLOR is anything
rawterm.get_color() accepts: a color name, #RRGGBB, or a palette number. A
value naming another element copies that element's style
("description=text"), and a word without '=' expands a built-in template
("monochrome"). Invalid entries are ignored with a warning.
"""

import logging
import os

from rawterm import Style, get_color

logger = logging.getLogger(__name__)

# Character drawn instead of the content of password boxes
_MASK_CHAR = "*"

# Number of blank cells between the end of a description and its box
_DESCRIPTION_GAP = 2

_STYLES = {
    "default": """
    cursor=fg:black,bg:white,blink
    fill=fg:black,bg:grey
    text=fg:black,bg:grey
    description=fg:white,bg:black
    """,
    # For terminals without colors
    "monochrome": """
    cursor=standout,blink
    fill=underline
    text=underline
    description=bold
    """,
}

_STYLE_ELEMENTS = ("cursor", "fill", "text", "description")


#
# Errors
#


class FormError(Exception):
    """
    Base class for the errors raised by textform.
    """


class EmptyFormError(FormError):
    """
    Raised by Form.start() for a form without text boxes.
    """


class DuplicateFieldNameError(FormError):
    """
    Raised by Form.add_text_box() when a box with the same name already exists
    in the form.
    """


class DuplicateTabOrderError(FormError):
    """
    Raised by Form.add_text_box() when another box in the form already uses
    the same tab order.
    """


class FormNotStartedError(FormError):
    """
    Raised when a form is given the input before Form.start() has picked its
    focus.
    """


#
# Styling
#


def style_helper(fgcolor, bgcolor):
    """
    Returns a rawterm.Style with the given foreground and background color
    names. An empty name means the terminal default color.
    """
    return Style(fg=get_color(fgcolor), bg=get_color(bgcolor))


def style_cursor(bgcolor):
    """
    Returns a cursor style. Only the background matters, as no text is ever
    drawn in the cursor cell.
    """
    return style_helper("black", bgcolor)


def style_fill(bgcolor):
    """
    Returns a fill style. Only the background matters, as fill cells never
    contain text.
    """
    return style_helper("black", bgcolor)


def _style_from_def(style_def):
    # Parses a style definition like "fg:white,bg:blue,bold" into a
    # rawterm.Style

    style = Style()

    for field in filter(None, style_def.split(",")):
        if field.startswith(("fg:", "bg:")):
            attr, color = field.split(":", 1)
            try:
                style = style.replace(**{attr: get_color(color)})
            except ValueError as e:
                logger.warning("Ignoring color in %r: %s", style_def, e)
        elif field in ("bold", "underline", "standout", "blink"):
            style = style.replace(**{field: True})
        else:
            logger.warning("Ignoring unknown style attribute %r", field)

    return style


def _parse_style(style_str, styles, parsing_default):
    # Parses a string with '<element>=<style>' assignments into 'styles'.
    # Anything without '=' is taken to be the name of a built-in template,
    # which is expanded in place.
    #
    # parsing_default is True while parsing the implicit 'default' template,
    # which silences the warning for new elements.

    for sline in style_str.split():
        if "=" in sline:
            key, data = sline.split("=", 1)

            if key not in styles and not parsing_default:
                logger.warning("Ignoring non-existent style element %r", key)
                continue

            if data in styles:
                styles[key] = styles[data]
            else:
                styles[key] = _style_from_def(data)

        elif sline in _STYLES:
            _parse_style(_STYLES[sline], styles, parsing_default)

        else:
            logger.warning("Ignoring non-existent style template %r", sline)


def load_styles(style_str=None):
    """
    Returns a dict mapping the style elements ("cursor", "fill", "text",
    "description") to rawterm.Style instances.

    The 'default' template is always applied first. style_str is then
    parsed on top of it. If style_str is None, the TEXTFORM_STYLE
    environment variable is used, if set.
    """
    styles = {}
    _parse_style(_STYLES["default"], styles, True)

    if style_str is None:
        style_str = os.environ.get("TEXTFORM_STYLE", "")
    _parse_style(style_str, styles, False)

    return styles


#
# Text boxes
#


class TextBoxSpec:
    """
    Everything needed to create a text box with Form.add_text_box().

    name:
      Name of the box. Used as the key in Form.collect() results, and must be
      unique within the form.

    description:
      Label drawn to the left of the box, ending two cells before it, if
      show_description is True. It's positioned relative to x, so leave room
      for it.

    default:
      Text to prefill the box with. It's typed into the box when the form is
      started, so a default longer than the box scrolls just like typed text.

    x, y:
      Screen position of the first cell of the box

    width, height:
      Size of the box. The text can be any length, but only 'width'
      characters are shown. Only one row is used regardless of height.

    cursor_style, fill_style, text_style, description_style:
      rawterm.Style instances. None picks the form's style for the element.

    tab_order:
      Position of the box in the tab order. Must be unique within the form.
      None leaves the box out of tab traversal.

    show_description:
      True if the description should be drawn

    has_focus:
      True if the box should have the focus when the form starts. The last
      box added with has_focus set wins.

    password:
      True to mask the text while typing. Form.collect() still returns the
      real text.
    """

    __slots__ = (
        "name",
        "description",
        "default",
        "x",
        "y",
        "width",
        "height",
        "cursor_style",
        "fill_style",
        "text_style",
        "description_style",
        "tab_order",
        "show_description",
        "has_focus",
        "password",
    )

    def __init__(
        self,
        name,
        description="",
        default="",
        x=0,
        y=0,
        width=10,
        height=1,
        cursor_style=None,
        fill_style=None,
        text_style=None,
        description_style=None,
        tab_order=None,
        show_description=False,
        has_focus=False,
        password=False,
    ):
        self.name = name
        self.description = description
        self.default = default
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.cursor_style = cursor_style
        self.fill_style = fill_style
        self.text_style = text_style
        self.description_style = description_style
        self.tab_order = tab_order
        self.show_description = show_description
        self.has_focus = has_focus
        self.password = password

    def __repr__(self):
        return f"<TextBoxSpec {self.name!r} at ({self.x}, {self.y}) width {self.width}>"


class TextField:
    """
    One single-line text box. Created by Form.add_text_box().

    The cursor column 'cx' stays within [px, px + width]. While the text
    fits, it sits right after the last character. Once the text is wider
    than the box, it stays on the right edge and the text slides left
    instead.
    """

    def __init__(self, surface, spec, styles):
        self._surface = surface

        self.name = spec.name
        self.description = spec.description
        self.default = spec.default
        self.tab_order = spec.tab_order
        self.show_description = spec.show_description
        self.mask = spec.password

        # Content. Grows without bound.
        self.content = []

        # Position and size of the box
        self.px = spec.x
        self.py = spec.y
        self.width = spec.width
        self.height = spec.height

        # Cursor position
        self.cx = self.px
        self.cy = self.py

        def pick(style, element):
            return style if style is not None else styles[element]

        self.cursor_style = pick(spec.cursor_style, "cursor")
        self.fill_style = pick(spec.fill_style, "fill")
        self.text_style = pick(spec.text_style, "text")
        self.description_style = pick(spec.description_style, "description")

    def __repr__(self):
        return (
            f"<TextField {self.name!r} at ({self.px}, {self.py}) "
            f"width {self.width}, {len(self.content)} chars>"
        )

    @property
    def value(self):
        """
        The text in the box, unmasked.
        """
        return "".join(self.content)

    def visible_text(self):
        """
        Returns the text shown in the box: all of it if it fits, otherwise
        the last 'width' characters. Masked for password boxes.
        """
        window = self.content[max(len(self.content) - self.width, 0) :]
        if self.mask:
            return _MASK_CHAR * len(window)
        return "".join(window)

    def start(self):
        """
        Draws the box and its description and types in the default value if
        the box is empty. Leaves the cursor hidden.
        """
        self._draw_box()
        self._draw_description()
        self._draw_text()
        if self.default and not self.content:
            for ch in self.default:
                self.add(ch)
        self.hide_cursor()

    def add(self, ch):
        """
        Appends a character, moving the cursor unless the box is already
        full, in which case the text slides one cell to the left.
        """
        self.content.append(ch)
        if len(self.content) <= self.width:
            self.cx += 1
        self._draw_text()

    def back(self):
        """
        Removes the last character, if any.
        """
        if self.content:
            self.content.pop()
            if len(self.content) < self.width:
                self.cx -= 1
                # Clear the cell the cursor was in
                self._surface.set_content(self.cx + 1, self.cy, " ", self.text_style)
        self._draw_text()

    def show_cursor(self):
        self._surface.set_content(self.cx, self.cy, " ", self.cursor_style)
        self._surface.show()

    def hide_cursor(self):
        self._surface.set_content(self.cx, self.cy, " ", self.fill_style)
        self._surface.show()

    def shift(self, dx, dy):
        """
        Moves the box and its cursor. Doesn't redraw.
        """
        self.px += dx
        self.cx += dx
        self.py += dy
        self.cy += dy

    def _draw_box(self):
        # The box covers one cell more than 'width', to leave room for the
        # cursor once the text reaches the right edge
        for x in range(self.px, self.px + self.width + 1):
            self._surface.set_content(x, self.py, " ", self.fill_style)

    def _draw_description(self):
        # Draws the description so that it ends _DESCRIPTION_GAP cells left
        # of the box. Anything that would land left of the first column is
        # cut off.
        if not self.show_description:
            return

        start = self.px - len(self.description) - _DESCRIPTION_GAP
        for i, ch in enumerate(self.description):
            if start + i >= 0:
                self._surface.set_content(
                    start + i, self.py, ch, self.description_style
                )

    def _draw_text(self):
        for i, ch in enumerate(self.visible_text()):
            self._surface.set_content(self.px + i, self.py, ch, self.text_style)
        self._surface.set_content(self.cx, self.cy, " ", self.cursor_style)
        self._surface.show()


#
# Forms
#


class Form:
    """
    A named group of text boxes sharing a surface, with a tab order and one
    focused box.

    surface:
      Where the form is drawn, normally a rawterm.Terminal. Anything with
      set_content(), show(), clear() and poll_event() methods works.

    name:
      Name of the form. formpoll publishes it when the form is submitted, so
      it should be unique among the forms of an application.

    styles:
      Style table for boxes that don't set their own styles. Defaults to
      load_styles().
    """

    def __init__(self, surface, name="", styles=None):
        self.name = name
        self.styles = styles if styles is not None else load_styles()

        # Field name -> TextField, in the order the fields were added
        self.fields = {}

        # Tab order -> field name
        self.tab_index = {}

        self._surface = surface
        self._focus = None

    def __repr__(self):
        return f"<Form {self.name!r}, {len(self.fields)} text boxes>"

    @property
    def surface(self):
        return self._surface

    @property
    def focus(self):
        """
        The focused TextField, or None before the focus has been decided
        """
        return self._focus

    def add_text_box(self, spec=None, **kwargs):
        """
        Adds a text box to the form and returns its TextField.

        Takes either a TextBoxSpec or the TextBoxSpec arguments as keyword
        arguments. Raises DuplicateFieldNameError or DuplicateTabOrderError
        if the name or tab order is already in use in the form, leaving the
        form unchanged.
        """
        if spec is None:
            spec = TextBoxSpec(**kwargs)

        if spec.name in self.fields:
            raise DuplicateFieldNameError(
                f"form {self.name!r} already has a text box named {spec.name!r}"
            )
        if spec.tab_order is not None and spec.tab_order in self.tab_index:
            raise DuplicateTabOrderError(
                f"tab order {spec.tab_order} in form {self.name!r} is already "
                f"used by {self.tab_index[spec.tab_order]!r}"
            )

        field = TextField(self._surface, spec, self.styles)
        self.fields[field.name] = field
        if field.tab_order is not None:
            self.tab_index[field.tab_order] = field.name
        if spec.has_focus:
            self._focus = field

        return field

    def start(self):
        """
        Draws all the text boxes of the form.

        If no box was added with has_focus, the box with the lowest tab order
        gets the focus, or the first box added if no box has a tab order.
        Raises EmptyFormError if the form has no boxes.
        """
        if not self.fields:
            raise EmptyFormError(f"no text boxes in form {self.name!r}, cannot start")

        if self._focus is None:
            if self.tab_index:
                logger.debug("no focus specified, picking lowest tab order")
                self._focus = self.fields[self.tab_index[min(self.tab_index)]]
            else:
                logger.debug("no tab orders, picking first text box for focus")
                self._focus = next(iter(self.fields.values()))

        for field in self.fields.values():
            field.start()

    def tab(self, direction):
        """
        Moves the focus to the next ("forward") or previous ("backward") box
        in the tab order, wrapping around at the ends.
        """
        if direction not in ("forward", "backward"):
            logger.debug("unsupported tab direction %r", direction)
            return

        if self._focus is None:
            logger.debug("tab in form %r before start, ignoring", self.name)
            return

        keys = sorted(self.tab_index)
        if not keys:
            return

        self._focus.hide_cursor()

        if self._focus.tab_order in self.tab_index:
            pos = keys.index(self._focus.tab_order)
            pos += 1 if direction == "forward" else -1
        else:
            # Focused box is outside the tab order. Enter it from the
            # matching end.
            pos = 0 if direction == "forward" else -1

        next_name = self.tab_index[keys[pos % len(keys)]]
        logger.debug("tab %s to %r", direction, next_name)
        self._focus = self.fields[next_name]
        self._focus.show_cursor()

    def collect(self):
        """
        Returns a dict mapping the name of each text box to its text.
        """
        return {name: field.value for name, field in self.fields.items()}

    def shift_xy(self, dx, dy):
        """
        Moves every text box by (dx, dy). Useful for placing a form relative
        to other things on the screen. Doesn't clear or redraw anything.
        """
        for field in self.fields.values():
            field.shift(dx, dy)

    def clear_shift_xy(self, dx, dy):
        """
        Like shift_xy(), but clears the surface first and redraws the form
        afterwards.
        """
        self._surface.clear()
        self.shift_xy(dx, dy)
        self.start()
