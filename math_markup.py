"""
Math markup in lesson and exercise text.

Text may embed inline formulas (``$...$``) and block formulas (``$$...$$``).
``split_math`` cuts a string into typed segments, ``render_math`` turns them
into safe HTML that KaTeX typesets in the browser. A string whose delimiters
do not pair up is rendered unchanged, as plain escaped text.
"""

from __future__ import annotations

from typing import NamedTuple

from markupsafe import Markup, escape

TEXT = "text"
INLINE = "inline"
BLOCK = "block"


class Segment(NamedTuple):
    kind: str
    value: str


def _split_pairs(text: str, delimiter: str, kind: str) -> list[Segment] | None:
    """Split on ``delimiter``; odd parts are formulas. None when unpaired."""
    parts = text.split(delimiter)
    if len(parts) % 2 == 0:
        return None
    segments = []
    for i, part in enumerate(parts):
        if i % 2:
            if not part.strip():
                return None
            segments.append(Segment(kind, part))
        elif part:
            segments.append(Segment(TEXT, part))
    return segments


def split_math(text: str | None) -> list[Segment]:
    if not text:
        return []
    if "$$" in text:
        blocks = _split_pairs(text, "$$", BLOCK)
        if blocks is None:
            return [Segment(TEXT, text)]
        segments: list[Segment] = []
        for seg in blocks:
            if seg.kind == TEXT and "$" in seg.value:
                segments.extend(_split_pairs(seg.value, "$", INLINE) or [seg])
            else:
                segments.append(seg)
        return segments
    if "$" in text:
        return _split_pairs(text, "$", INLINE) or [Segment(TEXT, text)]
    return [Segment(TEXT, text)]


def render_math(text: str | None) -> Markup:
    html = []
    for seg in split_math(text):
        if seg.kind == BLOCK:
            html.append(Markup('<div class="math-block">\\[{}\\]</div>').format(seg.value.strip()))
        elif seg.kind == INLINE:
            html.append(Markup('<span class="math-inline">\\({}\\)</span>').format(seg.value.strip()))
        else:
            html.append(escape(seg.value))
    return Markup("").join(html)


def preview(text: str | None, limit: int) -> Markup:
    """Render the first ``limit`` characters; a cut formula falls back to raw text."""
    text = text or ""
    if len(text) <= limit:
        return render_math(text)
    return render_math(text[:limit]) + Markup("...")


def init_app(app) -> None:
    app.add_template_filter(render_math, "math")
    app.add_template_filter(preview, "math_preview")
