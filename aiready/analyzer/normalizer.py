"""Source normalization: SourceFile -> CodeUnits plus recoverable warnings.

normalize() is a pure function of the file's content and language. Every
failure in here is per-file and degrades to line chunking.
"""
from typing import Callable, Dict, List, Protocol, Tuple

from .extractor import CHUNK_LINES, LineChunkExtractor, StructuralExtractor, SyntaxErrorsFound
from .models import CodeUnit, Issue, IssueType, Language, Location, Severity, SourceFile
from .parser import LanguageParser


class UnitExtractor(Protocol):
    """Capability: turn one file of a given language into code units."""

    def extract(self, file: SourceFile) -> List[CodeUnit]:
        ...


# Structural extractors keyed by language; anything missing falls back to chunks.
EXTRACTORS: Dict[Language, Callable[[Language], UnitExtractor]] = {
    language: StructuralExtractor for language in LanguageParser.SUPPORTED_LANGUAGES
}


def _degraded(file: SourceFile, reason: str) -> Issue:
    return Issue(
        type=IssueType.DEGRADED_ANALYSIS,
        severity=Severity.INFO,
        message=(
            f"Structural parsing unavailable ({reason}); "
            f"analyzed as {CHUNK_LINES}-line chunks"
        ),
        location=Location(file=file.path, line=1),
    )


def normalize(file: SourceFile) -> Tuple[List[CodeUnit], List[Issue]]:
    """Convert a file into code units.

    Returns:
        (units, warnings): units start with the file's module unit, followed
        by function/class (or block) units in source order.
    """
    factory = EXTRACTORS.get(file.language)
    if factory is None:
        reason = f"no structural parser for language '{file.language.value}'"
        return LineChunkExtractor(file.language).extract(file), [_degraded(file, reason)]

    try:
        return factory(file.language).extract(file), []
    except SyntaxErrorsFound:
        units = LineChunkExtractor(file.language).extract(file)
        return units, [_degraded(file, "source contains syntax errors")]
    except RecursionError:
        units = LineChunkExtractor(file.language).extract(file)
        return units, [_degraded(file, "syntax tree nested too deeply")]
