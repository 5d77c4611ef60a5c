# -*- coding: utf-8 -*-
"""
LaTeX → Unicode approximation.

Qt's rich text engine (QTextBrowser) has no MathML support, so the desktop
UI typesets formulas as plain Unicode text instead.
"""

import re
from typing import Dict


# ---------------------------------------------------------------------------
# LaTeX → Unicode mappings
# ---------------------------------------------------------------------------

_GREEK_LETTERS = {
    'alpha': 'α', 'beta': 'β', 'gamma': 'γ', 'delta': 'δ',
    'epsilon': 'ε', 'varepsilon': 'ε', 'zeta': 'ζ', 'eta': 'η',
    'theta': 'θ', 'vartheta': 'ϑ', 'iota': 'ι', 'kappa': 'κ',
    'lambda': 'λ', 'mu': 'μ', 'nu': 'ν', 'xi': 'ξ',
    'pi': 'π', 'varpi': 'ϖ', 'rho': 'ρ', 'varrho': 'ϱ',
    'sigma': 'σ', 'varsigma': 'ς', 'tau': 'τ', 'upsilon': 'υ',
    'phi': 'φ', 'varphi': 'ϕ', 'chi': 'χ', 'psi': 'ψ',
    'omega': 'ω',
    'Gamma': 'Γ', 'Delta': 'Δ', 'Theta': 'Θ', 'Lambda': 'Λ',
    'Xi': 'Ξ', 'Pi': 'Π', 'Sigma': 'Σ', 'Upsilon': 'Υ',
    'Phi': 'Φ', 'Psi': 'Ψ', 'Omega': 'Ω',
}

_OPERATORS = {
    'times': '×', 'cdot': '·', 'div': '÷', 'pm': '±', 'mp': '∓',
    'leq': '≤', 'le': '≤', 'geq': '≥', 'ge': '≥', 'neq': '≠', 'ne': '≠',
    'approx': '≈', 'equiv': '≡', 'sim': '∼', 'cong': '≅', 'll': '≪', 'gg': '≫',
    'subset': '⊂', 'supset': '⊃', 'subseteq': '⊆', 'supseteq': '⊇',
    'in': '∈', 'notin': '∉', 'ni': '∋', 'cup': '∪', 'cap': '∩',
    'land': '∧', 'lor': '∨', 'neg': '¬', 'forall': '∀', 'exists': '∃',
    'partial': '∂', 'nabla': '∇', 'infty': '∞', 'propto': '∝',
    'angle': '∠', 'perp': '⊥', 'parallel': '∥', 'circ': '∘',
    'dots': '…', 'cdots': '⋯', 'ldots': '…', 'vdots': '⋮',
}

_ARROWS = {
    'rightarrow': '→', 'to': '→', 'leftarrow': '←', 'gets': '←',
    'Rightarrow': '⇒', 'Leftarrow': '⇐', 'implies': '⇒',
    'leftrightarrow': '↔', 'Leftrightarrow': '⇔', 'iff': '⇔',
    'uparrow': '↑', 'downarrow': '↓', 'mapsto': '↦',
}

_BIG_OPERATORS = {
    'sum': '∑', 'prod': '∏', 'coprod': '∐',
    'int': '∫', 'iint': '∬', 'iiint': '∭', 'oint': '∮',
    'bigcup': '⋃', 'bigcap': '⋂',
}

_FUNCTION_NAMES = (
    'lim', 'sin', 'cos', 'tan', 'arcsin', 'arccos', 'arctan',
    'sinh', 'cosh', 'tanh', 'sec', 'csc', 'cot', 'log', 'ln', 'lg',
    'exp', 'det', 'dim', 'min', 'max', 'sup', 'inf', 'arg', 'deg', 'gcd',
    'ker', 'hom',
)

_MISC_SYMBOLS = {
    'limsup': 'lim sup', 'liminf': 'lim inf', 'mod': 'mod', 'bmod': 'mod', 'pmod': 'mod',
    'hbar': 'ℏ', 'ell': 'ℓ', 'Re': 'ℜ', 'Im': 'ℑ', 'aleph': 'ℵ',
    'emptyset': '∅', 'varnothing': '∅', 'triangle': '△', 'star': '⋆',
    'dagger': '†', 'ddagger': '‡', 'prime': '′',
    'langle': '⟨', 'rangle': '⟩', 'lceil': '⌈', 'rceil': '⌉',
    'lfloor': '⌊', 'rfloor': '⌋',
    'quad': '  ', 'qquad': '    ',
    'displaystyle': '', 'textstyle': '', 'scriptstyle': '', 'scriptscriptstyle': '',
    'left': '', 'right': '', 'big': '', 'Big': '', 'bigg': '', 'Bigg': '',
    'limits': '', 'nolimits': '',
}

_SYMBOLS: Dict[str, str] = {}
for _table in (_GREEK_LETTERS, _OPERATORS, _ARROWS, _BIG_OPERATORS, _MISC_SYMBOLS):
    _SYMBOLS.update(_table)
_SYMBOLS.update({name: name for name in _FUNCTION_NAMES})

_SUPERSCRIPT_MAP = str.maketrans(
    '0123456789+-=()niabcdefghjklmoprstuvwxyzT',
    '⁰¹²³⁴⁵⁶⁷⁸⁹⁺⁻⁼⁽⁾ⁿⁱᵃᵇᶜᵈᵉᶠᵍʰʲᵏˡᵐᵒᵖʳˢᵗᵘᵛʷˣʸᶻᵀ',
)

_SUBSCRIPT_MAP = str.maketrans(
    '0123456789+-=()aehijklmnoprstuvx',
    '₀₁₂₃₄₅₆₇₈₉₊₋₌₍₎ₐₑₕᵢⱼₖₗₘₙₒₚᵣₛₜᵤᵥₓ',
)

# One level of nested braces
_GROUP = r'\{([^{}]*(?:\{[^{}]*\}[^{}]*)*)\}'


def _replace_frac(m: re.Match) -> str:
    num = latex_to_unicode(m.group(1))
    den = latex_to_unicode(m.group(2))
    if len(num) == 1 and len(den) == 1:
        return f'{num}⁄{den}'  # fraction slash
    return f'({num})/({den})'


def _replace_sqrt(m: re.Match) -> str:
    index = m.group(1)
    body = latex_to_unicode(m.group(2))
    root = f'√{body}' if len(body) <= 2 else f'√({body})'
    if index:
        return index.translate(_SUPERSCRIPT_MAP) + root
    return root


def _replace_script(m: re.Match) -> str:
    marker, group, single = m.group(1), m.group(2), m.group(3)
    table = _SUPERSCRIPT_MAP if marker == '^' else _SUBSCRIPT_MAP
    content = latex_to_unicode(group) if group is not None else single
    converted = content.translate(table)
    if group is None and converted == content:
        return marker + content
    return converted


def _replace_command(m: re.Match) -> str:
    name = m.group(1)
    return _SYMBOLS.get(name, m.group(0))


def latex_to_unicode(latex: str) -> str:
    """Convert a LaTeX math expression to a Unicode approximation."""
    text = latex.strip()

    # \text{...}, \mathrm{...}, \operatorname{...} → content as-is
    text = re.sub(r'\\(?:text|textrm|textsf|math(?:rm|bf|it|sf|tt|cal|bb|frak)|operatorname|boldsymbol|bm)'
                  + _GROUP, r'\1', text)

    text = re.sub(r'\\frac' + _GROUP + _GROUP, _replace_frac, text)
    text = re.sub(r'\\sqrt(?:\[([^\]]+)\])?' + _GROUP, _replace_sqrt, text)
    text = re.sub(r'([\^_])(?:' + _GROUP + r'|([A-Za-z0-9+\-]))', _replace_script, text)

    # Line breaks, alignment marks and spacing commands
    text = text.replace('\\\\', ' ').replace('&', ' ')
    text = re.sub(r'\\[,;:! ]', lambda m: '' if m.group(0) == r'\!' else ' ', text)

    # Whole command names only: \in must not eat \infty
    text = re.sub(r'\\([A-Za-z]+)', _replace_command, text)

    # Escaped braces and grouping braces
    text = text.replace(r'\{', '\x01').replace(r'\}', '\x02')
    text = text.replace('{', '').replace('}', '')
    text = text.replace('\x01', '{').replace('\x02', '}')

    return re.sub(r'  +', ' ', text).strip()
