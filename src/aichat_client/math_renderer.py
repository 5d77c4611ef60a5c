# -*- coding: utf-8 -*-
"""
LaTeX fragment rendering.

Formulas are typeset to MathML with latex2mathml. A formula that cannot be
typeset is shown as escaped source text in the same container.
"""

import html
import logging
import re

from latex2mathml.converter import convert as latex_to_mathml

from aichat_client.exceptions import MathRenderError
from aichat_client.models import MathFragment
from aichat_client.unicode_math import latex_to_unicode

logger = logging.getLogger(__name__)


MATH_BLOCK_CLASS = 'math-block'
MATH_INLINE_CLASS = 'math-inline'

# Typesetting outputs
MATHML = 'mathml'
UNICODE = 'unicode'


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

# Macros the assistant is prompted to use; latex2mathml has no \newcommand.
_MACROS = (
    (re.compile(r'\\unit\{([^{}]*)\}'), r'\\,\\text{\1}'),
    (re.compile(r'\\vs(?![A-Za-z])'), r'\\text{VS Code}'),
    (re.compile(r'\\cursor(?![A-Za-z])'), r'\\text{Cursor}'),
)

_SPACING_FIXUPS = (
    (',=,', '='),
    (r'\,=\,', '='),
    (r'\,\times\,', r'\times'),
)


def normalize_formula(formula: str) -> str:
    """Best-effort fixups for malformed formulas seen in model output."""
    text = formula
    if '\n' in text:
        text = ' '.join(line.strip() for line in text.split('\n'))

    text = re.sub(r'^\s*\[\s*', '', text)
    text = re.sub(r'\s*\]\s*$', '', text)

    # Series written without limits
    if r'\sum' in text and r'\frac' in text and r'\sum_' not in text:
        text = text.replace(r'\sum', r'\sum_{k=0}^{\infty}', 1)

    for old, new in _SPACING_FIXUPS:
        text = text.replace(old, new)

    for pattern, replacement in _MACROS:
        text = pattern.sub(replacement, text)

    return text.strip()


# ---------------------------------------------------------------------------
# Typesetting
# ---------------------------------------------------------------------------

def _check_balanced(formula: str) -> None:
    """latex2mathml is lenient with unclosed groups, so check them first."""
    depth = 0
    escaped = False
    for ch in formula:
        if escaped:
            escaped = False
            continue
        if ch == '\\':
            escaped = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth < 0:
                raise MathRenderError('Unexpected closing brace', formula)
    if depth:
        raise MathRenderError('Unbalanced braces', formula)

    lefts = len(re.findall(r'\\left(?![A-Za-z])', formula))
    rights = len(re.findall(r'\\right(?![A-Za-z])', formula))
    if lefts != rights:
        raise MathRenderError(r'Unbalanced \left / \right', formula)


def typeset(formula: str, display: bool, output: str = MATHML) -> str:
    """
    Typeset a formula.

    Args:
        formula: LaTeX source
        display: block (True) or inline (False) layout
        output: MATHML for browsers, UNICODE for Qt rich text

    Returns:
        HTML markup of the formula

    Raises:
        MathRenderError: malformed LaTeX or unknown output
    """
    _check_balanced(formula)
    if output == UNICODE:
        return html.escape(latex_to_unicode(formula))
    if output != MATHML:
        raise MathRenderError(f'Unknown math output: {output}', formula)
    try:
        return latex_to_mathml(formula, display='block' if display else 'inline')
    except Exception as e:
        raise MathRenderError(f'{type(e).__name__}: {e}', formula) from e


def _wrap(body: str, is_display: bool) -> str:
    if is_display:
        return f'<div class="{MATH_BLOCK_CLASS}">{body}</div>'
    return f'<span class="{MATH_INLINE_CLASS}">{body}</span>'


def render_formula(formula: str, is_display: bool, output: str = MATHML) -> str:
    """Render one formula into its container. Never raises."""
    try:
        rendered = typeset(normalize_formula(formula), is_display, output)
    except Exception as e:
        logger.warning(f"Formula fallback to text ({e}): {formula!r}")
        rendered = html.escape(formula)
    return _wrap(rendered, is_display)


def render_fragment(fragment: MathFragment, output: str = MATHML) -> str:
    return render_formula(fragment.formula, fragment.is_display, output)
