"""Tests for token normalization, shingling and similarity primitives."""
from aiready.analyzer import tokens as tok
from aiready.analyzer.models import Language


class TestLex:
    """Regex lexer used for line-chunked units."""

    def test_identifiers_and_literals_are_normalized(self):
        tokens = tok.lex('x = foo("bar", 42)', Language.PYTHON)
        assert tokens == ['ID', '=', 'ID', '(', 'STR', ',', 'NUM', ')']

    def test_keywords_and_punctuation_are_kept(self):
        tokens = tok.lex('if (a) { return b; }', Language.JAVASCRIPT)
        assert tokens == ['if', '(', 'ID', ')', '{', 'return', 'ID', ';', '}']

    def test_comments_are_dropped(self):
        python = tok.lex('a = 1  # trailing note\n', Language.PYTHON)
        script = tok.lex('a = 1; // note\n/* block\ncomment */ b = 2;', Language.JAVASCRIPT)
        assert python == ['ID', '=', 'NUM']
        assert script == ['ID', '=', 'NUM', ';', 'ID', '=', 'NUM', ';']

    def test_renaming_does_not_change_tokens(self):
        first = tok.lex('def total(items):\n    return sum(items)\n', Language.PYTHON)
        second = tok.lex('def amount(values):\n    return sum(values)\n', Language.PYTHON)
        assert first == second


class TestCountTokens:
    def test_counts_words_and_punctuation(self):
        assert tok.count_tokens('foo(bar, 1)') == 6

    def test_empty_text(self):
        assert tok.count_tokens('') == 0
        assert tok.count_tokens('   \n\t') == 0


class TestShingles:
    """Shingle sets and Jaccard similarity."""

    def test_overlapping_windows(self):
        tokens = [f"t{i}" for i in range(8)]
        assert len(tok.shingles(tokens)) == 4

    def test_short_sequence_is_one_shingle(self):
        assert len(tok.shingles(['a', 'b', 'c'])) == 1
        assert len(tok.shingles(['a', 'b', 'c', 'd', 'e'])) == 1

    def test_empty_sequence(self):
        assert tok.shingles([]) == frozenset()

    def test_hashes_are_stable(self):
        tokens = ['def', 'ID', '(', 'ID', ')', ':', 'return', 'ID']
        assert tok.shingles(tokens) == tok.shingles(list(tokens))

    def test_jaccard_identical_and_disjoint(self):
        a = tok.shingles([f"a{i}" for i in range(10)])
        b = tok.shingles([f"b{i}" for i in range(10)])
        assert tok.jaccard(a, a) == 1.0
        assert tok.jaccard(a, b) == 0.0
        assert tok.jaccard(frozenset(), frozenset()) == 0.0

    def test_jaccard_is_symmetric(self):
        a = tok.shingles([f"t{i}" for i in range(12)])
        b = tok.shingles([f"t{i}" for i in range(4, 16)])
        assert tok.jaccard(a, b) == tok.jaccard(b, a)
        # 8 windows each, 4 shared
        assert tok.jaccard(a, b) == 4 / 12


def test_signature_depends_on_content_only():
    assert tok.signature(['ID', '=', 'NUM']) == tok.signature(('ID', '=', 'NUM'))
    assert tok.signature(['ID', '=', 'NUM']) != tok.signature(['ID', '=', 'STR'])
    assert len(tok.signature([])) == 16
