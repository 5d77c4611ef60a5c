"""Tests for aichat_client.math_extractor."""

from aichat_client.math_extractor import (
    extract_math,
    is_math_expression,
    make_placeholder,
    new_nonce,
    placeholder_pattern,
)
from aichat_client.models import MathFragment


def ph(result, index=0):
    return make_placeholder(index, result.nonce)


class TestIsMathExpression:
    def test_latex_commands(self):
        assert is_math_expression(r"\frac{1}{2}")
        assert is_math_expression(r"\sum_{k} \frac{1}{k}")
        assert is_math_expression(r"2\pi r")

    def test_scripts_and_ratios(self):
        assert is_math_expression("x^2")
        assert is_math_expression("a_1")
        assert is_math_expression("1/2")

    def test_plain_prose_is_not_math(self):
        assert not is_math_expression("hello world")
        assert not is_math_expression("see the list below")


class TestPlaceholders:
    def test_placeholder_is_alphanumeric(self):
        nonce = new_nonce()
        assert make_placeholder(12, nonce).isalnum()
        assert placeholder_pattern(nonce).fullmatch(make_placeholder(12, nonce)).group(1) == "12"

    def test_other_nonce_does_not_match(self):
        assert placeholder_pattern(new_nonce()).search(make_placeholder(0)) is None


class TestExtractMath:
    def test_empty_text(self):
        result = extract_math("")
        assert result.text == ""
        assert result.fragments == []

    def test_text_without_math_is_unchanged(self):
        text = "Just **markdown** with a [link](http://example.com)."
        result = extract_math(text)
        assert result.text == text
        assert result.fragments == []

    def test_inline_dollar(self):
        result = extract_math(r"Area is $\pi r^2$ here")
        assert result.text == f"Area is {ph(result)} here"
        assert result.fragments == [MathFragment(formula=r"\pi r^2", is_display=False)]

    def test_display_dollar_alone(self):
        result = extract_math("$$x^2$$")
        assert result.text == ph(result)
        assert result.fragments == [MathFragment(formula="x^2", is_display=True)]

    def test_display_on_own_line_becomes_own_paragraph(self):
        result = extract_math("Before\n$$x^2$$\nAfter")
        assert result.text == f"Before\n\n{ph(result)}\n\nAfter"

    def test_escaped_dollars_are_not_math(self):
        result = extract_math(r"costs \$5 and \$6")
        assert result.fragments == []

    def test_fragments_in_order_of_appearance(self):
        result = extract_math("$a$ and $$b$$")
        assert [f.formula for f in result.fragments] == ["a", "b"]
        assert [f.is_display for f in result.fragments] == [False, True]
        assert result.text == f"{ph(result)} and {ph(result, 1)}"

    def test_bracket_block(self):
        result = extract_math("[\n\\frac{a}{b}\n]")
        assert result.text == ph(result)
        assert result.fragments == [MathFragment(formula=r"\frac{a}{b}", is_display=True)]

    def test_bracket_block_without_math_is_left_alone(self):
        text = "[\nhello world\n]"
        result = extract_math(text)
        assert result.text == text
        assert result.fragments == []

    def test_paren_delimiters(self):
        result = extract_math(r"so \(a+b\) holds")
        assert result.text == f"so {ph(result)} holds"
        assert result.fragments == [MathFragment(formula="a+b", is_display=False)]

    def test_square_bracket_delimiters(self):
        result = extract_math(r"\[E = mc^2\]")
        assert result.fragments == [MathFragment(formula="E = mc^2", is_display=True)]
        assert result.text == ph(result)

    def test_environment(self):
        result = extract_math(r"\begin{align*}a &= b\end{align*}")
        assert result.fragments == [MathFragment(formula="a &= b", is_display=True)]

    def test_bare_command_at_line_start(self):
        result = extract_math("\\sum_{k=1}^{n} k\nnext")
        assert result.fragments == [MathFragment(formula=r"\sum_{k=1}^{n} k", is_display=True)]
        assert result.text == f"{ph(result)}\n\nnext"

    def test_inline_bracket_command(self):
        result = extract_math(r"value [ \frac{1}{2} ] here")
        assert result.fragments == [MathFragment(formula=r"\frac{1}{2}", is_display=True)]
        assert "[" not in result.text
        assert "]" not in result.text

    def test_enclosing_brackets_are_swallowed(self):
        result = extract_math("See [$x$] now")
        assert result.text == f"See {ph(result)} now"

    def test_link_brackets_are_kept(self):
        result = extract_math("[$x$](http://example.com)")
        assert result.text == f"[{ph(result)}](http://example.com)"

    def test_code_is_protected(self):
        text = "Use `$x$` or:\n```\n$$y$$\n```\n"
        result = extract_math(text)
        assert result.text == text
        assert result.fragments == []

    def test_indented_display_stays_inline(self):
        # Four spaces would make the padded paragraph an indented code block.
        result = extract_math("    $$x$$")
        assert result.text == f"    {ph(result)}"

    def test_fragments_are_per_call(self):
        first = extract_math("$a$")
        second = extract_math("$b$")
        assert first.text == ph(first)
        assert second.text == ph(second)
        assert first.nonce != second.nonce
        assert first.fragments[0].formula == "a"
        assert second.fragments[0].formula == "b"

    def test_square_bracket_delimiters_with_command(self):
        result = extract_math(r"\[ \frac{a}{b} \]")
        assert result.text == ph(result)
        assert result.fragments == [MathFragment(formula=r"\frac{a}{b}", is_display=True)]

    def test_square_bracket_delimiters_over_lines(self):
        result = extract_math("Then\n\\[\n\\frac{a}{b}\n\\]\ndone")
        assert result.fragments == [MathFragment(formula=r"\frac{a}{b}", is_display=True)]
        assert "\\" not in result.text
        assert result.text == f"Then\n\n{ph(result)}\n\ndone"

    def test_fence_nested_in_list_is_protected(self):
        text = "1. Example:\n\n    ```\n    echo $HOME $PATH\n    ```\n"
        result = extract_math(text)
        assert result.text == text
        assert result.fragments == []

    def test_literal_placeholder_text_is_kept(self):
        result = extract_math("$a$ and MATHPLACEHOLDER0ENDMATH")
        assert result.text == f"{ph(result)} and MATHPLACEHOLDER0ENDMATH"
        assert len(result.fragments) == 1
