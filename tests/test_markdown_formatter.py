"""Tests for aichat_client.markdown_formatter (the full render pipeline)."""

import pytest

from aichat_client import markdown_formatter
from aichat_client.markdown_formatter import (
    add_copy_buttons,
    code_block_texts,
    copy_target,
    format_citations,
    format_message,
    format_user_message,
    render_markdown,
    restore_math,
    set_copy_label,
)
from aichat_client.math_extractor import make_placeholder
from aichat_client.math_renderer import UNICODE
from aichat_client.models import MathFragment


class TestRenderMarkdown:
    def test_basic_markdown(self):
        out = render_markdown("# Title\n\nSome **bold** text")
        assert "<h1>Title</h1>" in out
        assert "<strong>bold</strong>" in out

    def test_list_classes(self):
        out = render_markdown("- one\n- two")
        assert '<ul class="markdown-list">' in out
        assert '<li class="markdown-list-item">' in out

    def test_tight_ordered_markers(self):
        out = render_markdown("1.First\n2.Second")
        assert '<ol class="markdown-list">' in out
        assert "First" in out

    def test_decimal_is_not_a_list(self):
        assert "<ol" not in render_markdown("3.14 is pi")

    def test_tables(self):
        out = render_markdown("| a | b |\n|---|---|\n| 1 | 2 |")
        assert "<table>" in out
        assert "<td>1</td>" in out

    def test_raw_html_is_escaped(self):
        out = render_markdown("<b>hi</b>")
        assert "<b>" not in out
        assert "&lt;b&gt;" in out


class TestRestoreMath:
    def test_display_paragraph_is_replaced(self):
        fragments = [MathFragment(formula="x", is_display=True)]
        out = restore_math(f"<p>{make_placeholder(0)}</p>\n", fragments, UNICODE)
        assert out == '<div class="math-block">x</div>\n'

    def test_inline_placeholder(self):
        fragments = [MathFragment(formula="y", is_display=False)]
        out = restore_math(f"<p>a {make_placeholder(0)} b</p>", fragments, UNICODE)
        assert out == '<p>a <span class="math-inline">y</span> b</p>'

    def test_missing_fragment_left_as_is(self):
        text = f"<p>{make_placeholder(5)}</p>"
        assert restore_math(text, []) == text


class TestCitations:
    def test_marker_becomes_superscript(self):
        assert format_citations("<p>Paris [1].</p>") == (
            '<p>Paris <sup class="citation-reference">[1]</sup>.</p>'
        )

    def test_link_syntax_is_not_a_citation(self):
        assert format_citations("see [2](x)") == "see [2](x)"

    def test_code_is_skipped(self):
        text = '<pre class="hljs"><code>a[1]</code></pre> <code>b[2]</code>'
        assert format_citations(text) == text

    def test_attributes_are_skipped(self):
        text = '<a title="[3]">x</a>'
        assert format_citations(text) == text


class TestCopyButtons:
    BLOCKS = (
        '<pre class="hljs"><code class="language-python">a = 1\n</code></pre>\n'
        '<p>text</p>\n'
        '<pre class="hljs"><code><span class="n">b</span> &lt; 2\n</code></pre>\n'
    )

    def test_blocks_are_numbered(self):
        out = add_copy_buttons(self.BLOCKS)
        assert out.count('class="code-block-wrapper"') == 2
        assert 'href="copy:0"' in out
        assert 'href="copy:1"' in out

    def test_block_texts(self):
        assert code_block_texts(self.BLOCKS) == ["a = 1\n", "b < 2\n"]

    def test_set_copy_label(self):
        out = add_copy_buttons(self.BLOCKS)
        relabeled = set_copy_label(out, 1, "Copied")
        assert relabeled.count(">Copied</a>") == 1
        assert relabeled.count(">Copy</a>") == 1
        assert relabeled.index(">Copy</a>") < relabeled.index(">Copied</a>")

    def test_copy_target(self):
        assert copy_target("copy:3") == 3
        assert copy_target("http://example.com") is None


class TestFormatMessage:
    def test_empty(self):
        assert format_message("") == ""

    def test_no_math_equals_markdown(self):
        text = "Hello **world**\n\n- a\n- b\n\n> quote"
        assert format_message(text) == render_markdown(text)

    def test_display_math(self):
        out = format_message("$$x^2$$")
        assert '<div class="math-block"><math' in out
        assert 'display="block"' in out
        assert "$$" not in out
        assert "<p>" not in out

    def test_inline_math(self):
        out = format_message("The square $x^2$ grows.")
        assert '<span class="math-inline"><math' in out
        assert "<msup>" in out
        assert "$" not in out
        assert "MATHPLACEHOLDER" not in out

    def test_bracket_block_renders_like_dollars(self):
        assert format_message("[\n\\frac{a}{b}\n]") == format_message("$$\\frac{a}{b}$$")

    def test_script_is_escaped(self):
        out = format_message("<script>alert(1)</script>")
        assert "<script>" not in out
        assert "&lt;script&gt;" in out

    def test_citations(self):
        out = format_message("Paris is the capital [1].")
        assert '<sup class="citation-reference">[1]</sup>' in out

    def test_malformed_math_falls_back(self):
        out = format_message("$$\\frac{1}{$$")
        assert '<div class="math-block">\\frac{1}{</div>' in out
        assert "<math" not in out

    def test_code_block_with_syntax_error(self):
        code = "def f(:\n    return 1\n"
        out = format_message(f"```python\n{code}```")
        assert '<code class="language-python">' in out
        assert 'class="copy-button"' in out
        assert 'href="copy:0"' in out
        assert code_block_texts(out) == [code]

    def test_math_inside_code_is_untouched(self):
        out = format_message("```\n$x$\n```")
        assert "<math" not in out
        assert code_block_texts(out) == ["$x$\n"]

    def test_unicode_output(self):
        out = format_message("$\\alpha$", math_output=UNICODE)
        assert '<span class="math-inline">α</span>' in out

    def test_citation_next_to_link(self):
        out = format_message("See [1] and [2](http://x)")
        assert '<sup class="citation-reference">[1]</sup>' in out
        assert '<a href="http://x">2</a>' in out
        assert "[2]" not in out

    def test_square_bracket_display_math(self):
        out = format_message(r"\[ \frac{a}{b} \]")
        assert out == format_message("$$\\frac{a}{b}$$")
        assert "\\" not in out

    def test_math_in_image_alt(self):
        out = format_message("![plot of $x^2$](a.png)")
        assert '<img src="a.png" alt="plot of x^2"' in out
        assert "<math" not in out
        assert "MATHPLACEHOLDER" not in out

    def test_math_in_link_target_cannot_break_out(self):
        out = format_message('[t]($\\text{" onmouseover="alert(1)}$)')
        assert 'onmouseover="' not in out
        assert '<a href="\\text{&quot; onmouseover=&quot;alert(1)}">t</a>' in out

    def test_math_cannot_make_javascript_link(self):
        out = format_message("[t]($javascript:alert(1)$)")
        assert "javascript:" not in out
        assert '<a href="">t</a>' in out

    def test_literal_placeholder_text_survives(self):
        out = format_message("$a$ and MATHPLACEHOLDER0ENDMATH")
        assert out.count("<math") == 1
        assert "MATHPLACEHOLDER0ENDMATH" in out

    def test_tight_marker_inside_code_is_kept(self):
        out = format_message("```\n1.e4 e5\n2.Nf3\n```")
        assert code_block_texts(out) == ["1.e4 e5\n2.Nf3\n"]

    def test_indented_code_gets_copy_control(self):
        out = format_message("Run this:\n\n    x = 1\n")
        assert 'href="copy:0"' in out
        assert code_block_texts(out) == ["x = 1\n"]

    def test_unexpected_failure_returns_escaped_text(self, monkeypatch):
        def _boom(text):
            raise RuntimeError("boom")

        monkeypatch.setattr(markdown_formatter, "render_markdown", _boom)
        assert format_message("<b>x</b>") == '<div class="error">&lt;b&gt;x&lt;/b&gt;</div>'


class TestFormatUserMessage:
    def test_escaped_and_not_markdown(self):
        assert format_user_message("<b>**hi**</b>\nthere") == (
            "&lt;b&gt;**hi**&lt;/b&gt;<br>there"
        )

    @pytest.mark.parametrize("text", ["", None])
    def test_empty(self, text):
        assert format_user_message(text) == ""
