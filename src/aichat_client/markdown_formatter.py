# -*- coding: utf-8 -*-
"""
Markdown → HTML formatter for chat messages.

Converts assistant text (markdown, fenced code, LaTeX formulas, citation
markers) into HTML for a browser view or Qt's QTextBrowser.

Pipeline: extract math → markdown → restore math → citations → copy buttons.
"""

import html
import itertools
import logging
import re
from typing import List, Optional

from markdown_it import MarkdownIt

from aichat_client.highlighting import highlight_code
from aichat_client.math_extractor import code_spans, extract_math, placeholder_pattern
from aichat_client.math_renderer import MATHML, render_fragment
from aichat_client.models import MathFragment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Markdown engine
# ---------------------------------------------------------------------------

LIST_CLASS = 'markdown-list'
LIST_ITEM_CLASS = 'markdown-list-item'


def _highlight(code: str, lang: str, attrs: str) -> str:
    return highlight_code(code, lang)


def _list_open(self, tokens, idx, options, env):
    tokens[idx].attrSet('class', LIST_CLASS)
    return self.renderToken(tokens, idx, options, env)


def _list_item_open(self, tokens, idx, options, env):
    tokens[idx].attrSet('class', LIST_ITEM_CLASS)
    return self.renderToken(tokens, idx, options, env)


def _code_block(self, tokens, idx, options, env):
    # Indented code gets the same markup as fences, copy control included
    return highlight_code(tokens[idx].content) + '\n'


def _create_markdown() -> MarkdownIt:
    md = MarkdownIt(
        'commonmark',
        {
            'html': False,         # raw HTML from the model is escaped
            'linkify': True,
            'typographer': True,
            'breaks': True,
            'highlight': _highlight,
        },
    ).enable(['table', 'strikethrough', 'linkify', 'replacements', 'smartquotes'])

    md.add_render_rule('bullet_list_open', _list_open)
    md.add_render_rule('ordered_list_open', _list_open)
    md.add_render_rule('list_item_open', _list_item_open)
    md.add_render_rule('code_block', _code_block)
    return md


# Read-only after construction, safe to share between threads.
_md = _create_markdown()

# "1.Item" → "1. Item"; decimals such as 3.14 are left alone
_TIGHT_ORDERED_MARKER_RE = re.compile(r'^([ \t]*\d+\.)(?=[A-Za-z*_])', re.MULTILINE)


def render_markdown(text: str) -> str:
    """Convert markdown text to HTML."""
    protected = code_spans(text)

    def _space_marker(m):
        if any(start <= m.start() < end for start, end in protected):
            return m.group(0)
        return m.group(1) + ' '

    text = _TIGHT_ORDERED_MARKER_RE.sub(_space_marker, text)
    return _md.render(text)


# ---------------------------------------------------------------------------
# Post-processing
# ---------------------------------------------------------------------------

_TAG_RE = re.compile(r'(<[^>]*>)')
_ATTRIBUTE_RE = re.compile(r'([\w-]+)="([^"]*)"')
_URL_ATTRIBUTES = ('href', 'src')


def restore_math(text: str, fragments: List[MathFragment], output: str = MATHML,
                 nonce: str = '') -> str:
    """
    Replace placeholders with rendered formulas.

    A display formula alone in a paragraph replaces the paragraph. Inside
    tag markup (image alt, link href or title) the formula source goes in
    escaped, since markup cannot nest there. Placeholders without a
    fragment stay as they are.
    """
    placeholder_re = placeholder_pattern(nonce)
    paragraph_re = re.compile(r'<p>' + placeholder_re.pattern + r'</p>')

    def _fragment(m) -> Optional[MathFragment]:
        index = int(m.group(1))
        if index >= len(fragments):
            logger.debug(f"No math fragment for placeholder {m.group(0)}")
            return None
        return fragments[index]

    def _block(m):
        fragment = _fragment(m)
        if fragment is None or not fragment.is_display:
            return m.group(0)
        return render_fragment(fragment, output)

    def _inline(m):
        fragment = _fragment(m)
        return m.group(0) if fragment is None else render_fragment(fragment, output)

    def _source(m):
        fragment = _fragment(m)
        return m.group(0) if fragment is None else html.escape(fragment.formula, quote=True)

    def _attribute(m):
        name, value = m.groups()
        restored = placeholder_re.sub(_source, value)
        if restored == value:
            return m.group(0)
        # javascript:, data: and similar schemes are dropped
        if name in _URL_ATTRIBUTES and not _md.validateLink(html.unescape(restored)):
            logger.warning(f"Dropped unsafe link restored from math: {restored!r}")
            restored = ''
        return f'{name}="{restored}"'

    text = paragraph_re.sub(_block, text)
    parts = _TAG_RE.split(text)
    for i in range(len(parts)):
        if i % 2:
            parts[i] = _ATTRIBUTE_RE.sub(_attribute, parts[i])
        else:
            parts[i] = placeholder_re.sub(_inline, parts[i])
    return ''.join(parts)


_CITATION_RE = re.compile(r'(?<!\])\[(\d+)\](?!\()')
# Code, formulas and tag markup are never touched
_CITATION_SKIP_RE = re.compile(
    r'(<pre\b.*?</pre>|<code\b.*?</code>|<math\b.*?</math>|<[^>]+>)',
    re.DOTALL,
)
CITATION_CLASS = 'citation-reference'


def format_citations(text: str) -> str:
    """Wrap [n] citation markers in a superscript."""
    parts = _CITATION_SKIP_RE.split(text)
    for i in range(0, len(parts), 2):
        parts[i] = _CITATION_RE.sub(rf'<sup class="{CITATION_CLASS}">[\1]</sup>', parts[i])
    return ''.join(parts)


# Host UIs intercept links with this scheme: copy:<block number>
COPY_SCHEME = 'copy'

_CODE_BLOCK_RE = re.compile(r'<pre class="hljs">(<code[^>]*>.*?</code>)</pre>', re.DOTALL)
_COPY_TARGET_RE = re.compile(COPY_SCHEME + r':(\d+)$')


def add_copy_buttons(text: str, label: str = 'Copy') -> str:
    """Wrap every highlighted code block with a numbered copy control."""
    counter = itertools.count()

    def _wrap(m):
        n = next(counter)
        return (
            f'<div class="code-block-wrapper" data-code-block="{n}">'
            f'<a class="copy-button" href="{COPY_SCHEME}:{n}" data-copy-target="{n}">{label}</a>'
            f'{m.group(0)}</div>'
        )

    return _CODE_BLOCK_RE.sub(_wrap, text)


def code_block_texts(text: str) -> List[str]:
    """Plain text of each code block, numbered like the copy controls."""
    blocks = []
    for m in _CODE_BLOCK_RE.finditer(text):
        inner = re.sub(r'<[^>]+>', '', m.group(1))
        blocks.append(html.unescape(inner))
    return blocks


def set_copy_label(text: str, index: int, label: str) -> str:
    """Relabel the copy control of block ``index`` (e.g. "Copied" feedback)."""
    pattern = re.compile(
        r'(<a class="copy-button" href="' + COPY_SCHEME + ':' + str(index) + r'"[^>]*>)[^<]*(</a>)'
    )
    return pattern.sub(lambda m: m.group(1) + html.escape(label) + m.group(2), text, count=1)


def copy_target(url: str) -> Optional[int]:
    """Block number of a copy:<n> link, None for any other link."""
    m = _COPY_TARGET_RE.match(url.strip())
    return int(m.group(1)) if m else None


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def format_message(text: str, math_output: str = MATHML) -> str:
    """
    Convert assistant markdown to HTML.

    Handles: LaTeX formulas (dollar, bracket, environment and bare-command
    forms), headers, lists, bold, tables, fenced code with highlighting,
    autolinks, typography, citation markers [n], copy controls on code.

    Never raises: on an unexpected failure the raw text comes back escaped
    inside ``<div class="error">``.
    """
    if not text:
        return ''

    try:
        # 1. Math → placeholders
        extraction = extract_math(text)

        # 2. Markdown
        out = render_markdown(extraction.text)

        # 3. Placeholders → rendered math
        out = restore_math(out, extraction.fragments, math_output, extraction.nonce)

        # 4. Citation markers
        out = format_citations(out)

        # 5. Copy controls
        return add_copy_buttons(out)
    except Exception:
        logger.exception("Failed to format message")
        return f'<div class="error">{html.escape(text)}</div>'


def format_user_message(text: str) -> str:
    """User text is shown verbatim: escaped, never rendered as markdown."""
    if not text:
        return ''
    return html.escape(text).replace('\n', '<br>')
