# -*- coding: utf-8 -*-
"""
LaTeX fragment extraction.

Finds math in raw chat text and swaps each fragment for an opaque
placeholder, so the markdown transform never sees LaTeX syntax.
The fragment list is built per call and returned with the text.
"""

import re
import uuid
from typing import Callable, List, NamedTuple, Optional, Pattern, Sequence, Tuple

from aichat_client.models import Extraction, MathFragment


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

# Letters and digits only: markdown never escapes, wraps or splits them.
# The per-call nonce keeps literal placeholder text in the input inert.
PLACEHOLDER_PREFIX = 'MATHPLACEHOLDER'
PLACEHOLDER_SUFFIX = 'ENDMATH'


def new_nonce() -> str:
    return uuid.uuid4().hex


def make_placeholder(index: int, nonce: str = '') -> str:
    return f'{PLACEHOLDER_PREFIX}{nonce}{index}{PLACEHOLDER_SUFFIX}'


def placeholder_pattern(nonce: str = '') -> Pattern:
    """Regex for the placeholders of one extraction; group 1 is the index."""
    return re.compile(PLACEHOLDER_PREFIX + re.escape(nonce) + r'(\d+)' + PLACEHOLDER_SUFFIX)


# ---------------------------------------------------------------------------
# "Is this math" heuristic
# ---------------------------------------------------------------------------

_MATH_TOKENS = (
    r'\frac', r'\sum', r'\int', r'\prod', r'\lim', r'\inf', r'\sup',
    r'\alpha', r'\beta', r'\gamma', r'\delta', r'\epsilon', r'\zeta',
    r'\eta', r'\theta', r'\iota', r'\kappa', r'\lambda', r'\mu', r'\nu',
    r'\xi', r'\pi', r'\rho', r'\sigma', r'\tau', r'\upsilon', r'\phi',
    r'\chi', r'\psi', r'\omega',
    r'\partial', r'\nabla', r'\approx', r'\sim', r'\cong', r'\equiv',
    r'\times', r'\div', r'\pm', r'\mp', r'\cup', r'\cap', r'\in', r'\ni',
    r'\subset', r'\supset', r'\emptyset', r'\forall', r'\exists', r'\neg',
    r'\rightarrow', r'\leftarrow', r'\Rightarrow', r'\Leftarrow', r'\infty',
    r'\sin', r'\cos', r'\tan', r'\cot', r'\sec', r'\csc', r'\log', r'\ln',
    '{', '}', '^', '_',
    r'\left', r'\right', r'\cdot', r'\cdots', r'\ldots',
)

_MATH_PATTERNS = (
    re.compile(r'\d/\d'),             # 1/2
    re.compile(r'[_^]\{\w+\}'),       # x_{ij}, e^{ix}
    re.compile(r'[_^]\w'),            # x_1, x^2
    re.compile(r'\([-+]?\d+\)'),      # (-3)
)


def is_math_expression(text: str) -> bool:
    """
    Guess whether ``text`` is LaTeX math.

    Deliberately permissive: a false positive only costs a formula that
    falls back to escaped text, a false negative leaves math unrendered.
    """
    if r'\sum' in text and r'\frac' in text:
        return True
    if r'\pi' in text or r'\infty' in text:
        return True
    if any(token in text for token in _MATH_TOKENS):
        return True
    return any(pattern.search(text) for pattern in _MATH_PATTERNS)


# ---------------------------------------------------------------------------
# Recognition rules, in priority order
# ---------------------------------------------------------------------------

class _Span(NamedTuple):
    start: int
    end: int
    formula: str
    is_display: bool


_Rule = Tuple[Pattern, Callable[[re.Match], Optional[_Span]]]

_BARE_COMMANDS = r'(?:\\frac|\\sum|\\int|\\prod|\\lim)(?![A-Za-z])'
_BRACKETED_COMMANDS = r'(?:\\frac|\\sum|\\int|\\prod|\\lim|\\inf|\\sup|\\pi)(?![A-Za-z])'


def _span(m: re.Match, group: int, is_display: bool, whole: bool = True) -> Optional[_Span]:
    formula = m.group(group).strip()
    if not formula:
        return None
    if whole:
        return _Span(m.start(), m.end(), formula, is_display)
    return _Span(m.start(group), m.end(group), formula, is_display)


def _bracket_block(m: re.Match) -> Optional[_Span]:
    if not is_math_expression(m.group(1).strip()):
        return None
    return _span(m, 1, True)


_RULES: Sequence[_Rule] = (
    # [
    #   \frac{a}{b}
    # ]
    (re.compile(r'(?<!\\)\[[ \t]*\n\s*([\s\S]*?)\n\s*\]'), _bracket_block),
    # $$ ... $$
    (re.compile(r'\$\$([\s\S]*?)\$\$'), lambda m: _span(m, 1, True)),
    # $ ... $
    (re.compile(r'(?<!\\)\$([^$\n]+?)(?<!\\)\$'), lambda m: _span(m, 1, False)),
    # \sum_{k} ... at the start of a line
    (re.compile(r'^[ \t]*(' + _BARE_COMMANDS + r'[^\n]*)', re.MULTILINE),
     lambda m: _span(m, 1, True, whole=False)),
    # \begin{equation} ... \end{equation}
    (re.compile(r'\\begin\{(equation|align|gather|eqnarray)(\*?)\}([\s\S]*?)\\end\{\1\2\}'),
     lambda m: _span(m, 3, True)),
    # \( ... \)
    (re.compile(r'\\\(([\s\S]*?)\\\)'), lambda m: _span(m, 1, False)),
    # [ \frac{a}{b} ]
    (re.compile(r'(?<!\\)\[\s*(' + _BRACKETED_COMMANDS + r'[\s\S]*?)\]'), lambda m: _span(m, 1, True)),
    # \[ ... \]
    (re.compile(r'\\\[([\s\S]*?)\\\]'), lambda m: _span(m, 1, True)),
)


# ---------------------------------------------------------------------------
# Code protection
# ---------------------------------------------------------------------------

_FENCE_OPEN_RE = re.compile(r'^[ \t]*(`{3,}|~{3,})')
_INLINE_CODE_RE = re.compile(r'(?<!`)(`+)(?!`)([^\n]+?)(?<!`)\1(?!`)')


def code_spans(text: str) -> List[Tuple[int, int]]:
    """Offsets of fenced code blocks and inline code spans."""
    spans: List[Tuple[int, int]] = []
    fence: Optional[str] = None
    fence_start = 0
    pos = 0
    for line in text.splitlines(keepends=True):
        if fence is None:
            m = _FENCE_OPEN_RE.match(line)
            if m:
                fence = m.group(1)
                fence_start = pos
        else:
            body = line.strip()
            if body and set(body) == {fence[0]} and len(body) >= len(fence):
                spans.append((fence_start, pos + len(line)))
                fence = None
        pos += len(line)
    if fence is not None:
        spans.append((fence_start, len(text)))

    for m in _INLINE_CODE_RE.finditer(text):
        if not _overlaps(m.start(), m.end(), spans):
            spans.append((m.start(), m.end()))
    return spans


def _overlaps(start: int, end: int, spans) -> bool:
    return any(start < s_end and s_start < end for s_start, s_end, *_ in spans)


# ---------------------------------------------------------------------------
# Delimiter widening
# ---------------------------------------------------------------------------

# At most one line break between a bracket and the fragment it encloses.
_OPEN_BRACKET_RE = re.compile(r'(\\?\[)[ \t]*(?:\n[ \t]*)?\Z')
_CLOSE_BRACKET_RE = re.compile(r'[ \t]*(?:\n[ \t]*)?(\\?\])')
_LOOKBEHIND = 256


def _widen(span: _Span, text: str, lower: int, upper: int) -> _Span:
    """Swallow a matching bracket pair that directly encloses the span."""
    window_start = max(lower, span.start - _LOOKBEHIND)
    opening = _OPEN_BRACKET_RE.search(text, window_start, span.start)
    if opening is None:
        return span
    closing = _CLOSE_BRACKET_RE.match(text, span.end, upper)
    if closing is None:
        return span
    if (opening.group(1) == '\\[') != (closing.group(1) == '\\]'):
        return span
    # [$x$](url) is a link, [$x$][ref] a reference
    if text[closing.end():closing.end() + 1] in ('(', '['):
        return span
    return span._replace(start=opening.start(1), end=closing.end())


def _own_line_bounds(span: _Span, text: str) -> Optional[Tuple[int, int, str]]:
    """Line bounds and indentation when the span fills its lines."""
    line_start = text.rfind('\n', 0, span.start) + 1
    line_end = text.find('\n', span.end)
    if line_end == -1:
        line_end = len(text)
    indent = text[line_start:span.start]
    if indent.strip() or text[span.end:line_end].strip():
        return None
    # Four columns would turn the padded paragraph into an indented code block.
    if len(indent.expandtabs(4)) >= 4:
        return None
    return line_start, line_end, indent


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _scan(text: str, protected: List[Tuple[int, int]]) -> List[_Span]:
    accepted: List[_Span] = []
    for pattern, build in _RULES:
        pos = 0
        while pos <= len(text):
            m = pattern.search(text, pos)
            if m is None:
                break
            span = build(m)
            if (span is None
                    or _overlaps(span.start, span.end, protected)
                    or _overlaps(span.start, span.end, accepted)):
                pos = m.start() + 1
                continue
            accepted.append(span)
            pos = max(m.end(), m.start() + 1)
    accepted.sort(key=lambda s: s.start)
    return accepted


def extract_math(text: str) -> Extraction:
    """
    Replace math fragments in ``text`` with placeholders.

    Returns the placeholder text and the fragments, indexed in the order
    they appear. Code blocks and inline code are left alone.
    """
    if not text:
        return Extraction(text=text or '', fragments=[])

    nonce = new_nonce()

    protected = code_spans(text)
    spans = _scan(text, protected)

    widened: List[_Span] = []
    for i, span in enumerate(spans):
        lower = widened[-1].end if widened else 0
        upper = spans[i + 1].start if i + 1 < len(spans) else len(text)
        candidate = _widen(span, text, lower, upper)
        if candidate is not span and _overlaps(candidate.start, candidate.end, protected):
            candidate = span
        widened.append(candidate)

    pieces: List[str] = []
    fragments: List[MathFragment] = []
    cursor = 0
    for span in widened:
        placeholder = make_placeholder(len(fragments), nonce)
        fragments.append(MathFragment(formula=span.formula, is_display=span.is_display))

        bounds = _own_line_bounds(span, text) if span.is_display else None
        if bounds is None:
            pieces.append(text[cursor:span.start])
            pieces.append(placeholder)
            cursor = span.end
            continue

        # Own paragraph: blank line on both sides.
        line_start, line_end, indent = bounds
        pieces.append(text[cursor:line_start])
        pieces.append(('\n' if line_start > 0 else '') + indent + placeholder
                      + ('\n' if line_end < len(text) else ''))
        cursor = line_end

    pieces.append(text[cursor:])
    return Extraction(text=''.join(pieces), fragments=fragments, nonce=nonce)
