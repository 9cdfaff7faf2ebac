"""Token normalization, shingling and token-cost estimation.

The normalization scheme is fixed so that superficial renaming does not
prevent a match: identifiers become ID, literals become STR/NUM, comments
and whitespace disappear, keywords and punctuation stay verbatim.
"""
import hashlib
import re
from typing import FrozenSet, Iterable, List, Sequence

from .models import Language

ID = "ID"
STR = "STR"
NUM = "NUM"

SHINGLE_SIZE = 5

KEYWORDS = {
    Language.PYTHON: {
        'False', 'None', 'True', 'and', 'as', 'assert', 'async', 'await', 'break',
        'class', 'continue', 'def', 'del', 'elif', 'else', 'except', 'finally',
        'for', 'from', 'global', 'if', 'import', 'in', 'is', 'lambda', 'nonlocal',
        'not', 'or', 'pass', 'raise', 'return', 'try', 'while', 'with', 'yield',
    },
    Language.JAVASCRIPT: {
        'async', 'await', 'break', 'case', 'catch', 'class', 'const', 'continue',
        'debugger', 'default', 'delete', 'do', 'else', 'export', 'extends', 'false',
        'finally', 'for', 'from', 'function', 'if', 'import', 'in', 'instanceof',
        'let', 'new', 'null', 'of', 'return', 'static', 'super', 'switch', 'this',
        'throw', 'true', 'try', 'typeof', 'undefined', 'var', 'void', 'while',
        'with', 'yield',
    },
    Language.JAVA: {
        'abstract', 'boolean', 'break', 'case', 'catch', 'char', 'class', 'continue',
        'default', 'do', 'double', 'else', 'enum', 'extends', 'final', 'finally',
        'float', 'for', 'if', 'implements', 'import', 'instanceof', 'int',
        'interface', 'long', 'new', 'null', 'package', 'private', 'protected',
        'public', 'return', 'static', 'super', 'switch', 'this', 'throw', 'throws',
        'try', 'void', 'while', 'true', 'false',
    },
    Language.GO: {
        'break', 'case', 'chan', 'const', 'continue', 'default', 'defer', 'else',
        'fallthrough', 'for', 'func', 'go', 'goto', 'if', 'import', 'interface',
        'map', 'package', 'range', 'return', 'select', 'struct', 'switch', 'type',
        'var', 'nil', 'true', 'false',
    },
    Language.RUST: {
        'as', 'async', 'await', 'break', 'const', 'continue', 'crate', 'else', 'enum',
        'extern', 'false', 'fn', 'for', 'if', 'impl', 'in', 'let', 'loop', 'match',
        'mod', 'move', 'mut', 'pub', 'ref', 'return', 'self', 'Self', 'static',
        'struct', 'super', 'trait', 'true', 'type', 'unsafe', 'use', 'where', 'while',
    },
}
KEYWORDS[Language.TYPESCRIPT] = KEYWORDS[Language.JAVASCRIPT] | {
    'abstract', 'any', 'as', 'boolean', 'declare', 'enum', 'implements',
    'interface', 'keyof', 'namespace', 'number', 'private', 'protected',
    'public', 'readonly', 'string', 'type', 'unknown', 'never',
}
KEYWORDS[Language.TSX] = KEYWORDS[Language.TYPESCRIPT]

_HASH_COMMENT = r'\#[^\n]*'
_SLASH_COMMENT = r'//[^\n]*|/\*.*?\*/'
_STRING = (
    r'"""[\s\S]*?"""|\'\'\'[\s\S]*?\'\'\''
    r'|"(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\'|`(?:\\.|[^`\\])*`'
)
_NUMBER = r'\b\d[\d_]*(?:\.\d+)?(?:[eE][+-]?\d+)?\b|\b0[xXbBoO][\da-fA-F_]+\b'
_WORD = r'[A-Za-z_$][\w$]*'
_PUNCT = r'[^\s\w]'


def _lexer(comment: str) -> "re.Pattern[str]":
    return re.compile(
        rf'(?P<comment>{comment})|(?P<str>{_STRING})|(?P<num>{_NUMBER})'
        rf'|(?P<word>{_WORD})|(?P<punct>{_PUNCT})',
        re.DOTALL,
    )


_HASH_LEXER = _lexer(_HASH_COMMENT)
_SLASH_LEXER = _lexer(_SLASH_COMMENT)
_RAW_TOKEN = re.compile(r'\w+|[^\w\s]')


def lex(text: str, language: Language) -> List[str]:
    """Tokenize text with the fixed normalization scheme.

    Used for line-chunked units where no syntax tree is available.
    """
    lexer = _HASH_LEXER if language == Language.PYTHON else _SLASH_LEXER
    keywords = KEYWORDS.get(language, set())
    tokens = []
    for match in lexer.finditer(text):
        kind = match.lastgroup
        if kind == 'comment':
            continue
        if kind == 'str':
            tokens.append(STR)
        elif kind == 'num':
            tokens.append(NUM)
        elif kind == 'word':
            word = match.group()
            tokens.append(word if word in keywords else ID)
        else:
            tokens.append(match.group())
    return tokens


def count_tokens(text: str) -> int:
    """Estimate language tokens in raw text (words and punctuation marks).

    Comments and docstrings count: they occupy context just like code.
    """
    return sum(1 for _ in _RAW_TOKEN.finditer(text))


def signature(tokens: Sequence[str]) -> str:
    """Content-derived signature of a normalized token sequence."""
    digest = hashlib.sha256('\x1f'.join(tokens).encode('utf-8'))
    return digest.hexdigest()[:16]


def _stable_hash(parts: Iterable[str]) -> int:
    digest = hashlib.blake2b('\x1f'.join(parts).encode('utf-8'), digest_size=8)
    return int.from_bytes(digest.digest(), 'big')


def shingles(tokens: Sequence[str], size: int = SHINGLE_SIZE) -> FrozenSet[int]:
    """Hashed set of overlapping token shingles.

    A sequence shorter than size yields one shingle covering all of it.
    """
    if not tokens:
        return frozenset()
    if len(tokens) <= size:
        return frozenset({_stable_hash(tokens)})
    return frozenset(
        _stable_hash(tokens[i:i + size]) for i in range(len(tokens) - size + 1)
    )


def jaccard(a: FrozenSet[int], b: FrozenSet[int]) -> float:
    """Jaccard ratio of two shingle sets; symmetric, 0.0 for two empty sets."""
    if not a and not b:
        return 0.0
    intersection = len(a & b)
    return intersection / (len(a) + len(b) - intersection)
