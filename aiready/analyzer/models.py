"""Shared data model for extraction, analyzers and reports."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Language(str, Enum):
    """Closed set of recognized source languages."""
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    JAVA = "java"
    GO = "go"
    RUST = "rust"
    UNKNOWN = "unknown"

    @classmethod
    def from_path(cls, path: str) -> "Language":
        """Detect language from a file extension."""
        dot = path.rfind(".")
        if dot == -1:
            return cls.UNKNOWN
        return EXTENSION_LANGUAGES.get(path[dot:].lower(), cls.UNKNOWN)


EXTENSION_LANGUAGES = {
    '.py': Language.PYTHON,
    '.pyi': Language.PYTHON,
    '.js': Language.JAVASCRIPT,
    '.jsx': Language.JAVASCRIPT,
    '.mjs': Language.JAVASCRIPT,
    '.cjs': Language.JAVASCRIPT,
    '.ts': Language.TYPESCRIPT,
    '.mts': Language.TYPESCRIPT,
    '.cts': Language.TYPESCRIPT,
    '.tsx': Language.TSX,
    '.java': Language.JAVA,
    '.go': Language.GO,
    '.rs': Language.RUST,
}


class UnitKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    BLOCK = "block"
    MODULE = "module"  # top-level scope; carries imports, never compared


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.CRITICAL: 3,
    Severity.MAJOR: 2,
    Severity.MINOR: 1,
    Severity.INFO: 0,
}


class IssueType(str, Enum):
    DUPLICATE_PATTERN = "duplicate-pattern"
    CONTEXT_FRAGMENTATION = "context-fragmentation"
    CIRCULAR_DEPENDENCY = "circular-dependency"
    DEGRADED_ANALYSIS = "degraded-analysis"
    # Reserved for future analyzers
    DOC_DRIFT = "doc-drift"
    NAMING_INCONSISTENCY = "naming-inconsistency"
    DEAD_CODE = "dead-code"
    MISSING_TYPES = "missing-types"


@dataclass(frozen=True)
class SourceFile:
    """A file as read from disk. Path is POSIX and relative to the scan root."""
    path: str
    content: str
    language: Language

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode('utf-8'))

    @property
    def line_count(self) -> int:
        if not self.content:
            return 0
        return self.content.count('\n') + (0 if self.content.endswith('\n') else 1)

    @classmethod
    def from_text(cls, path: str, content: str) -> "SourceFile":
        return cls(path=path, content=content, language=Language.from_path(path))


@dataclass(frozen=True, order=True)
class Span:
    """Source span with 1-based lines and columns."""
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def line_count(self) -> int:
        return max(0, self.end_line - self.start_line + 1)

    def contains(self, other: "Span") -> bool:
        """True if other lies within this span (and is not identical to it)."""
        if self == other:
            return False
        starts_after = (other.start_line, other.start_column) >= (self.start_line, self.start_column)
        ends_before = (other.end_line, other.end_column) <= (self.end_line, self.end_column)
        return starts_after and ends_before


@dataclass(frozen=True)
class ImportRef:
    """A raw import target as written in source."""
    target: str
    line: int
    is_relative: bool = False
    names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CodeUnit:
    """A function, class, block or module-scope fragment of one file."""
    file_path: str
    kind: UnitKind
    name: str
    span: Span
    tokens: Tuple[str, ...]
    signature: str
    imports: Tuple[ImportRef, ...] = ()
    definitions: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()

    @property
    def line_count(self) -> int:
        return self.span.line_count

    @property
    def token_count(self) -> int:
        return len(self.tokens)

    @property
    def sort_key(self) -> tuple:
        """Deterministic ordering: path, position, then lexical tie-break."""
        return (self.file_path, self.span.start_line, self.span.start_column,
                self.span.end_line, self.span.end_column, self.kind.value, self.name)

    @property
    def identity(self) -> str:
        return f"{self.file_path}:{self.span.start_line}:{self.span.start_column}:{self.kind.value}"


@dataclass(frozen=True)
class DuplicateCluster:
    """Transitively linked near-duplicate units.

    similarity is the weakest link in the cluster; members may individually
    fall below the threshold when chained through an intermediate unit.
    """
    members: Tuple[CodeUnit, ...]
    representative: CodeUnit
    links: Tuple[Tuple[str, str, float], ...]
    similarity: float

    @property
    def size(self) -> int:
        return len(self.members)

    def best_similarity(self, unit: CodeUnit) -> float:
        """Highest similarity of any link touching unit."""
        scores = [s for a, b, s in self.links if unit.identity in (a, b)]
        return max(scores) if scores else 0.0


@dataclass(frozen=True)
class DependencyEdge:
    source: str
    target: str
    raw_target: str
    line: int


@dataclass(frozen=True)
class Location:
    file: str
    line: int
    column: Optional[int] = None
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'file': self.file, 'line': self.line}
        if self.column is not None:
            data['column'] = self.column
        if self.end_line is not None:
            data['endLine'] = self.end_line
        if self.end_column is not None:
            data['endColumn'] = self.end_column
        return data


@dataclass(frozen=True)
class Issue:
    type: IssueType
    severity: Severity
    message: str
    location: Location
    suggestion: Optional[str] = None
    token_cost: Optional[int] = None

    @property
    def sort_key(self) -> tuple:
        """Total order over every field, so merged issue lists never depend on input order."""
        return (self.location.file, self.location.line, self.location.column or 0,
                self.type.value, -self.severity.rank, self.message,
                self.location.end_line or 0, self.location.end_column or 0,
                self.suggestion is not None, self.suggestion or '',
                -1 if self.token_cost is None else self.token_cost)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'type': self.type.value,
            'severity': self.severity.value,
            'message': self.message,
            'location': self.location.to_dict(),
        }
        if self.suggestion is not None:
            data['suggestion'] = self.suggestion
        if self.token_cost is not None:
            data['tokenCost'] = self.token_cost
        return data


# Metric fields merged by summation; everything else merges by maximum.
ADDITIVE_METRICS = ('token_cost',)

METRIC_KEYS = {
    'token_cost': 'tokenCost',
    'complexity_score': 'complexityScore',
    'consistency_score': 'consistencyScore',
    'doc_freshness_score': 'docFreshnessScore',
    'import_depth': 'importDepth',
    'dependency_count': 'dependencyCount',
    'cohesion': 'cohesion',
    'fragmentation': 'fragmentation',
    'token_cost_ratio': 'tokenCostRatio',
}


@dataclass(frozen=True)
class Metrics:
    """Per-file metrics; each populated only by analyzers that compute it.

    consistency_score and doc_freshness_score are reserved.
    """
    token_cost: Optional[int] = None
    complexity_score: Optional[float] = None
    consistency_score: Optional[float] = None
    doc_freshness_score: Optional[float] = None
    import_depth: Optional[int] = None
    dependency_count: Optional[int] = None
    cohesion: Optional[float] = None
    fragmentation: Optional[float] = None
    token_cost_ratio: Optional[float] = None

    def merge(self, other: "Metrics") -> "Metrics":
        """Order-independent field-wise merge."""
        values = {}
        for name in METRIC_KEYS:
            mine, theirs = getattr(self, name), getattr(other, name)
            if mine is None or theirs is None:
                values[name] = mine if theirs is None else theirs
            elif name in ADDITIVE_METRICS:
                values[name] = mine + theirs
            else:
                values[name] = max(mine, theirs)
        return Metrics(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for name, key in METRIC_KEYS.items():
            value = getattr(self, name)
            if value is not None:
                data[key] = round(value, 6) if isinstance(value, float) else value
        return data


@dataclass(frozen=True)
class AnalysisResult:
    """Issues and metrics one tool produced for one file."""
    file_name: str
    tool: str
    issues: Tuple[Issue, ...] = ()
    metrics: Metrics = field(default_factory=Metrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fileName': self.file_name,
            'tool': self.tool,
            'issues': [issue.to_dict() for issue in self.issues],
            'metrics': self.metrics.to_dict(),
        }


@dataclass(frozen=True)
class ReportSummary:
    total_files: int
    total_issues: int
    critical_issues: int
    major_issues: int
    minor_issues: int
    info_issues: int
    tools_run: Tuple[str, ...]
    issues_by_tool: Tuple[Tuple[str, int], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalFiles': self.total_files,
            'totalIssues': self.total_issues,
            'criticalIssues': self.critical_issues,
            'majorIssues': self.major_issues,
            'minorIssues': self.minor_issues,
            'infoIssues': self.info_issues,
            'toolsRun': list(self.tools_run),
            'issuesByTool': dict(self.issues_by_tool),
        }


@dataclass(frozen=True)
class ReportMetrics:
    overall_score: float
    token_cost_total: int
    avg_consistency: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overallScore': self.overall_score,
            'tokenCostTotal': self.token_cost_total,
            'avgConsistency': self.avg_consistency,
        }


@dataclass(frozen=True)
class Report:
    summary: ReportSummary
    results: Tuple[AnalysisResult, ...]
    metrics: ReportMetrics

    def issues(self, tool: Optional[str] = None) -> List[Issue]:
        """All issues, optionally only those of one tool."""
        return [
            issue
            for result in self.results
            if tool is None or result.tool == tool
            for issue in result.issues
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary.to_dict(),
            'results': [result.to_dict() for result in self.results],
            'metrics': self.metrics.to_dict(),
        }
