"""Tests for math_markup.py: segment splitting, rendering, previews."""

from math_markup import BLOCK, INLINE, TEXT, Segment, preview, render_math, split_math


class TestSplitMath:
    def test_empty(self):
        assert split_math("") == []
        assert split_math(None) == []

    def test_plain_text(self):
        assert split_math("Pas de formule.") == [Segment(TEXT, "Pas de formule.")]

    def test_inline(self):
        assert split_math("Soit $x$ un réel") == [
            Segment(TEXT, "Soit "),
            Segment(INLINE, "x"),
            Segment(TEXT, " un réel"),
        ]

    def test_block_with_inline_in_text(self):
        assert split_math("On a $$\\int_0^1 x\\,dx$$ donc $I = \\frac12$.") == [
            Segment(TEXT, "On a "),
            Segment(BLOCK, "\\int_0^1 x\\,dx"),
            Segment(TEXT, " donc "),
            Segment(INLINE, "I = \\frac12"),
            Segment(TEXT, "."),
        ]

    def test_unpaired_inline_falls_back(self):
        assert split_math("Prix : 5$") == [Segment(TEXT, "Prix : 5$")]

    def test_unpaired_block_falls_back(self):
        text = "Début $$x^2 sans fin"
        assert split_math(text) == [Segment(TEXT, text)]

    def test_unpaired_inline_inside_block_text_stays_text(self):
        assert split_math("$$a$$ puis 3$") == [Segment(BLOCK, "a"), Segment(TEXT, " puis 3$")]


class TestRenderMath:
    def test_inline_and_block_markup(self):
        html = str(render_math("$a$ et $$b$$"))
        assert '<span class="math-inline">\\(a\\)</span>' in html
        assert '<div class="math-block">\\[b\\]</div>' in html

    def test_text_is_escaped(self):
        html = str(render_math("<script>alert(1)</script> $x<y$"))
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "\\(x&lt;y\\)" in html

    def test_malformed_renders_raw(self):
        assert str(render_math("a $ b")) == "a $ b"


class TestPreview:
    def test_short_text_untouched(self):
        assert str(preview("$x$", 10)) == '<span class="math-inline">\\(x\\)</span>'

    def test_truncation_adds_ellipsis(self):
        assert str(preview("abcdefghij", 4)) == "abcd..."

    def test_truncation_inside_formula_falls_back_to_raw(self):
        assert str(preview("abc $x^2$ def", 6)) == "abc $x..."


class TestTemplateFilters:
    def test_filters_registered(self, app):
        assert "math" in app.jinja_env.filters
        assert "math_preview" in app.jinja_env.filters
