# -*- coding: utf-8 -*-
"""
Syntax highlighting for fenced code blocks (Pygments).
"""

import html
import logging
from typing import NamedTuple, Optional

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)


class LanguageSpec(NamedTuple):
    """Canonical language for a fence tag."""
    name: str    # used in the language-* class
    lexer: str   # Pygments alias


def _spec(name: str, lexer: Optional[str] = None) -> LanguageSpec:
    return LanguageSpec(name, lexer or name)


_JS = _spec('javascript')
_TS = _spec('typescript')
_PY = _spec('python')
_SH = _spec('bash')

LANGUAGE_ALIASES = {
    'js': _JS, 'javascript': _JS, 'jsx': _spec('jsx', 'javascript'), 'node': _JS, 'mjs': _JS,
    'ts': _TS, 'typescript': _TS, 'tsx': _spec('tsx', 'typescript'),
    'py': _PY, 'python': _PY, 'py3': _PY, 'python3': _PY,
    'sh': _SH, 'bash': _SH, 'shell': _SH, 'zsh': _SH, 'console': _spec('console', 'console'),
    'ps': _spec('powershell'), 'ps1': _spec('powershell'), 'powershell': _spec('powershell'),
    'rb': _spec('ruby'), 'ruby': _spec('ruby'),
    'yml': _spec('yaml'), 'yaml': _spec('yaml'),
    'json': _spec('json'), 'jsonc': _spec('json'),
    'html': _spec('html'), 'xml': _spec('xml'), 'css': _spec('css'), 'scss': _spec('scss'),
    'c': _spec('c'), 'h': _spec('c'),
    'cpp': _spec('cpp'), 'c++': _spec('cpp'), 'cc': _spec('cpp'), 'hpp': _spec('cpp'),
    'cs': _spec('csharp'), 'c#': _spec('csharp'), 'csharp': _spec('csharp'),
    'java': _spec('java'), 'kt': _spec('kotlin'), 'kotlin': _spec('kotlin'),
    'go': _spec('go'), 'golang': _spec('go'),
    'rs': _spec('rust'), 'rust': _spec('rust'),
    'swift': _spec('swift'), 'php': _spec('php'),
    'sql': _spec('sql'), 'md': _spec('markdown'), 'markdown': _spec('markdown'),
    'tex': _spec('latex'), 'latex': _spec('latex'),
    'dockerfile': _spec('docker'), 'docker': _spec('docker'),
    'ini': _spec('ini'), 'toml': _spec('toml'),
    'diff': _spec('diff'), 'patch': _spec('diff'),
    'text': _spec('text'), 'txt': _spec('text'), 'plaintext': _spec('text'),
}

# Pygments emits token classes only, colors come from get_style_defs().
_FORMATTER = HtmlFormatter(nowrap=True)
CODE_STYLE = 'monokai'


def resolve_language(tag: Optional[str]) -> Optional[LanguageSpec]:
    """Map a fence tag to its canonical language, or None if unknown."""
    if not tag:
        return None
    key = tag.strip().lower()
    if key in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[key]
    try:
        get_lexer_by_name(key)
    except ClassNotFound:
        return None
    return _spec(key)


def _render(code: str, lexer: Lexer) -> str:
    return highlight(code, lexer, _FORMATTER)


def _pre(body: str, language: Optional[str] = None) -> str:
    cls = f' class="language-{html.escape(language)}"' if language else ''
    return f'<pre class="hljs"><code{cls}>{body}</code></pre>'


def highlight_code(code: str, lang: Optional[str] = None) -> str:
    """
    Highlight a code block into ``<pre class="hljs"><code>``.

    Tries the tagged language, then auto-detection, then plain escaped
    text. Never raises.
    """
    spec = resolve_language(lang)
    if spec is not None:
        try:
            return _pre(_render(code, get_lexer_by_name(spec.lexer)), spec.name)
        except Exception as e:
            logger.warning(f"Highlighting as {spec.lexer} failed, auto-detecting: {e}")
    elif lang:
        logger.debug(f"Unknown code language '{lang}', auto-detecting")

    try:
        return _pre(_render(code, guess_lexer(code)))
    except Exception as e:
        logger.debug(f"Language auto-detection failed: {e}")
    return _pre(html.escape(code))


def code_style_css(selector: str = '.hljs') -> str:
    """CSS for the token classes produced by highlight_code()."""
    return HtmlFormatter(style=CODE_STYLE).get_style_defs(selector)
