"""End-to-end analysis run.

Files are read and normalized concurrently; the comparison phase (pattern
detection and the dependency graph) starts only once every extraction task
has committed. A run either returns a complete Report or raises.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from aiready.config import AnalysisOptions
from aiready.errors import AnalysisCancelled, AnalysisTimeout
from aiready.utils.logger import get_logger

from .aggregator import aggregate
from .context_analyzer import ContextAnalyzer
from .models import (
    AnalysisResult, CodeUnit, Issue, IssueType, Location, Report, Severity, SourceFile,
)
from .normalizer import normalize
from .pattern_detector import PatternDetector
from .scanner import FileScanner

logger = get_logger(__name__)

NORMALIZE_TOOL = "normalize"

# Called once per committed file with (completed, total, path)
ProgressCallback = Callable[[int, int, str], None]


@dataclass(frozen=True)
class Extraction:
    """One file's extraction outcome; file is None when it could not be read."""
    path: str
    file: Optional[SourceFile]
    units: Tuple[CodeUnit, ...]
    warnings: Tuple[Issue, ...]


def extract_file(scanner: FileScanner, rel_path: str,
                 cancel_event: threading.Event) -> Optional[Extraction]:
    """Read and normalize one file. Returns None if the run was cancelled first."""
    if cancel_event.is_set():
        return None
    try:
        content = scanner.read_content(rel_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Skipping unreadable file %s: %s", rel_path, e)
        warning = Issue(
            type=IssueType.DEGRADED_ANALYSIS,
            severity=Severity.INFO,
            message=f"File could not be read: {e}",
            location=Location(file=rel_path, line=1),
        )
        return Extraction(path=rel_path, file=None, units=(), warnings=(warning,))

    file = SourceFile.from_text(rel_path, content)
    units, warnings = normalize(file)
    return Extraction(path=rel_path, file=file, units=tuple(units), warnings=tuple(warnings))


def extract_all(scanner: FileScanner, paths: Sequence[str], options: AnalysisOptions,
                cancel_event: threading.Event,
                on_progress: Optional[ProgressCallback] = None,
                deadline: Optional[float] = None) -> List[Extraction]:
    """Extract every path on a bounded thread pool.

    Raises:
        AnalysisCancelled: If cancel_event is set before all files commit
        AnalysisTimeout: If the deadline passes before all files commit
    """
    total = len(paths)
    extractions: List[Extraction] = []
    executor = ThreadPoolExecutor(max_workers=options.workers, thread_name_prefix="aiready")
    try:
        future_to_path = {
            executor.submit(extract_file, scanner, path, cancel_event): path for path in paths
        }
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            for future in as_completed(future_to_path, timeout=remaining):
                extraction = future.result()
                if extraction is None or cancel_event.is_set():
                    raise AnalysisCancelled("Analysis was cancelled")
                extractions.append(extraction)
                if on_progress is not None:
                    on_progress(len(extractions), total, extraction.path)
        except FuturesTimeout:
            raise AnalysisTimeout(options.timeout, len(extractions), total) from None
    finally:
        # Drop queued tasks on any abort; running ones finish and are discarded
        executor.shutdown(wait=True, cancel_futures=True)

    if deadline is not None and time.monotonic() > deadline:
        raise AnalysisTimeout(options.timeout, len(extractions), total)
    return sorted(extractions, key=lambda extraction: extraction.path)


def analyze(extractions: Sequence[Extraction], options: AnalysisOptions) -> Report:
    """Comparison phase: run the selected analyzers and aggregate."""
    files = [e.file for e in extractions if e.file is not None]
    units_by_file: Dict[str, Sequence[CodeUnit]] = {
        e.path: e.units for e in extractions if e.file is not None
    }

    results: List[AnalysisResult] = [
        AnalysisResult(file_name=e.path, tool=NORMALIZE_TOOL, issues=e.warnings)
        for e in extractions if e.warnings
    ]

    if "patterns" in options.tools:
        detector = PatternDetector(options.min_similarity, options.min_lines)
        all_units = [unit for units in units_by_file.values() for unit in units]
        results.extend(detector.analyze(files, all_units))
        logger.debug("Pattern detection finished")

    if "context" in options.tools:
        analyzer = ContextAnalyzer(options.max_depth, options.max_context_budget)
        results.extend(analyzer.analyze(files, units_by_file))
        logger.debug("Context analysis finished")

    return aggregate(results, options.tools)


def run(options: AnalysisOptions, *, cancel_event: Optional[threading.Event] = None,
        on_progress: Optional[ProgressCallback] = None) -> Report:
    """Analyze a directory tree.

    Args:
        options: Run options; validated before anything touches the disk
        cancel_event: Set it from another thread to abort the run
        on_progress: Called once per committed file

    Returns:
        The aggregated Report

    Raises:
        ConfigurationError: If options are invalid
        ScanError: If the root directory is missing or unreadable
        AnalysisTimeout: If the timeout elapses before the comparison phase
        AnalysisCancelled: If cancel_event is set before the comparison phase
    """
    options.validate()
    cancel_event = cancel_event or threading.Event()
    deadline = None if options.timeout is None else time.monotonic() + options.timeout

    scanner = FileScanner(options.root_dir)
    paths = scanner.scan(options.include, options.exclude)
    logger.info("Found %d files under %s", len(paths), scanner.root)

    if cancel_event.is_set():
        raise AnalysisCancelled("Analysis was cancelled")

    extractions = extract_all(scanner, paths, options, cancel_event, on_progress, deadline)
    if cancel_event.is_set():
        raise AnalysisCancelled("Analysis was cancelled")

    return analyze(extractions, options)
