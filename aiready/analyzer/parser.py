"""Tree-sitter parsers for the languages with structural extraction."""
from tree_sitter import Language as TSLanguage, Parser, Tree
import tree_sitter_python as tspython
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript

from .models import Language


def _grammar(language: Language) -> TSLanguage:
    if language == Language.PYTHON:
        return TSLanguage(tspython.language())
    if language == Language.JAVASCRIPT:
        return TSLanguage(tsjavascript.language())
    if language == Language.TYPESCRIPT:
        return TSLanguage(tstypescript.language_typescript())
    if language == Language.TSX:
        return TSLanguage(tstypescript.language_tsx())
    raise ValueError(f"No tree-sitter grammar for language: {language.value}")


class LanguageParser:
    """Parser for one language using the tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = frozenset({
        Language.PYTHON,
        Language.JAVASCRIPT,
        Language.TYPESCRIPT,
        Language.TSX,
    })

    def __init__(self, language: Language):
        """Initialize parser for given language.

        Args:
            language: One of SUPPORTED_LANGUAGES

        Raises:
            ValueError: If language has no grammar
        """
        self.language = language
        self.parser = Parser(_grammar(language))

    def parse_source(self, source_code: bytes) -> Tree:
        """Parse source bytes and return the syntax tree.

        Tree-sitter always produces a tree; syntax errors show up as
        ERROR/MISSING nodes and root_node.has_error.
        """
        return self.parser.parse(source_code)
