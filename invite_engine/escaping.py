"""Escaping for values interpolated into an ffmpeg filter graph.

Values end up inside single quotes (`text='...'`, `fontfile='...'`). A
backslash inside quotes is literal to the graph parser, so a quote cannot
be escaped in place: it closes the quote, emits an escaped quote and
reopens. Every user string and filesystem path that ends up inside a
filter argument must go through one of these functions.
"""

import re

_NEWLINE_RE = re.compile(r"\r?\n")

# close quote, escaped quote (graph level, then option level), reopen quote
QUOTE_ESCAPE = "'\\\\\\''"


def escape_text(text: str = "") -> str:
    """Escape a user string for a drawtext `text='...'` argument"""
    if not text:
        return ""
    # Backslash first, otherwise the escapes added below get doubled
    escaped = str(text).replace("\\", "\\\\")
    escaped = escaped.replace("'", QUOTE_ESCAPE)
    escaped = escaped.replace(":", "\\:")
    escaped = escaped.replace(",", "\\,")
    return _NEWLINE_RE.sub(r"\\n", escaped)


def escape_font_path(path: str = "") -> str:
    """Escape a font path for a drawtext `fontfile='...'` argument"""
    if not path:
        return ""
    escaped = str(path).replace("\\", "/")
    escaped = escaped.replace("'", QUOTE_ESCAPE)
    return escaped.replace(":", "\\:")
