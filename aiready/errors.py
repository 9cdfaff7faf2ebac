"""Exception hierarchy for AIReady runs.

Per-file problems never raise; they are reported as info issues. Everything
here aborts the whole run and no partial Report is produced.
"""
from typing import List


class AIReadyError(Exception):
    """Base class for fatal analysis failures."""

    exit_code = 1


class ConfigurationError(AIReadyError, ValueError):
    """Invalid analysis options, raised before any scanning begins.

    Collects every problem found so the user sees them all at once.
    """

    exit_code = 2

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class ScanError(AIReadyError):
    """Root directory is missing or unreadable."""


class AnalysisTimeout(AIReadyError):
    """Run-level deadline exceeded before the comparison phase."""

    def __init__(self, timeout: float, completed: int, total: int):
        self.timeout = timeout
        self.completed = completed
        self.total = total
        super().__init__(
            f"Analysis timed out after {timeout:g}s "
            f"({completed}/{total} files extracted)"
        )


class AnalysisCancelled(AIReadyError):
    """Run was cancelled through its cancellation event."""
