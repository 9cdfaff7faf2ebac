"""Configuration management for AIReady.

Loads environment variables (optionally from a .env file) that provide the
defaults for every analysis option, and validates a complete option set
before a run starts.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
from dotenv import load_dotenv

from aiready.errors import ConfigurationError

__version__ = "0.1.0"

KNOWN_TOOLS = ("patterns", "context")

DEFAULT_MIN_SIMILARITY = 0.40
DEFAULT_MIN_LINES = 5
DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_CONTEXT_BUDGET = 10000


def default_workers() -> int:
    """Worker pool size sized to available concurrency."""
    return min(32, (os.cpu_count() or 1) + 4)


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_file: Optional[str | Path] = None):
        """Load the .env file from the working directory (or env_file).

        Values already present in the process environment win.

        Raises:
            ConfigurationError: If an AIREADY_* variable is malformed
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.is_file():
            load_dotenv(env_path, override=False)

        self._problems: List[str] = []
        self._min_similarity = self._read_float("AIREADY_MIN_SIMILARITY", DEFAULT_MIN_SIMILARITY)
        self._min_lines = self._read_int("AIREADY_MIN_LINES", DEFAULT_MIN_LINES)
        self._max_depth = self._read_int("AIREADY_MAX_DEPTH", DEFAULT_MAX_DEPTH)
        self._max_context_budget = self._read_int("AIREADY_MAX_CONTEXT", DEFAULT_MAX_CONTEXT_BUDGET)
        self._workers = self._read_int("AIREADY_WORKERS", default_workers())
        self._timeout = self._read_float("AIREADY_TIMEOUT", None)
        if self._problems:
            raise ConfigurationError(self._problems)

    def _read_int(self, name: str, default: Optional[int]) -> Optional[int]:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError:
            self._problems.append(f"{name} must be an integer, got {raw!r}")
            return default

    def _read_float(self, name: str, default: Optional[float]) -> Optional[float]:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            return float(raw)
        except ValueError:
            self._problems.append(f"{name} must be a number, got {raw!r}")
            return default

    @property
    def min_similarity(self) -> float:
        """Minimum Jaccard similarity for two units to be linked."""
        return self._min_similarity

    @property
    def min_lines(self) -> int:
        """Units shorter than this are never compared."""
        return self._min_lines

    @property
    def max_depth(self) -> int:
        """Maximum acceptable import depth."""
        return self._max_depth

    @property
    def max_context_budget(self) -> int:
        """Maximum acceptable context cost in tokens."""
        return self._max_context_budget

    @property
    def workers(self) -> int:
        """Extraction worker pool size."""
        return self._workers

    @property
    def timeout(self) -> Optional[float]:
        """Run-level timeout in seconds, or None for no limit."""
        return self._timeout


def load_config(env_file: Optional[str | Path] = None) -> Config:
    """Create a fresh Config from the current environment.

    Returns:
        Config instance
    """
    return Config(env_file)


@dataclass(frozen=True)
class AnalysisOptions:
    """Everything a single run needs."""
    root_dir: Path
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    min_similarity: float = DEFAULT_MIN_SIMILARITY
    min_lines: int = DEFAULT_MIN_LINES
    max_depth: int = DEFAULT_MAX_DEPTH
    max_context_budget: int = DEFAULT_MAX_CONTEXT_BUDGET
    tools: Tuple[str, ...] = KNOWN_TOOLS
    workers: int = field(default_factory=default_workers)
    timeout: Optional[float] = None

    @classmethod
    def from_config(cls, root_dir: str | Path, config: Config, **overrides) -> "AnalysisOptions":
        """Build options from Config defaults, letting non-None overrides win."""
        values = {
            "min_similarity": config.min_similarity,
            "min_lines": config.min_lines,
            "max_depth": config.max_depth,
            "max_context_budget": config.max_context_budget,
            "workers": config.workers,
            "timeout": config.timeout,
        }
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        for key in ("include", "exclude", "tools"):
            if key in values:
                values[key] = tuple(values[key])
        return cls(root_dir=Path(root_dir), **values)

    def validate(self) -> "AnalysisOptions":
        """Check every option, raising one ConfigurationError listing all problems.

        Returns:
            self, for chaining
        """
        problems = []
        if not 0.0 <= self.min_similarity <= 1.0:
            problems.append(f"min_similarity must be within [0, 1], got {self.min_similarity}")
        if self.min_lines < 1:
            problems.append(f"min_lines must be positive, got {self.min_lines}")
        if self.max_depth < 1:
            problems.append(f"max_depth must be positive, got {self.max_depth}")
        if self.max_context_budget < 1:
            problems.append(f"max_context_budget must be positive, got {self.max_context_budget}")
        if self.workers < 1:
            problems.append(f"workers must be positive, got {self.workers}")
        if self.timeout is not None and self.timeout <= 0:
            problems.append(f"timeout must be positive, got {self.timeout}")
        if not self.tools:
            problems.append("at least one tool must be selected")
        unknown = sorted(set(self.tools) - set(KNOWN_TOOLS))
        if unknown:
            problems.append(
                f"unknown tool(s): {', '.join(unknown)} (expected {', '.join(KNOWN_TOOLS)})"
            )
        if problems:
            raise ConfigurationError(problems)
        return self
