"""File discovery with glob include/exclude patterns."""
import os
import re
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, List, Sequence

from aiready.errors import ScanError

DEFAULT_INCLUDE = ('**/*.{ts,tsx,js,jsx,py,java}',)

DEFAULT_EXCLUDE = (
    '**/node_modules/**',
    '**/dist/**',
    '**/build/**',
    '**/.git/**',
    '**/coverage/**',
    '**/*.min.js',
    '**/*.bundle.js',
)

# Dependency, VCS and environment directories never worth descending into
EXCLUDED_DIRS = {
    'node_modules', 'dist', 'build', 'coverage',
    '.git', '.hg', '.svn',
    'venv', '.venv', 'env', '.virtualenv', '.tox', 'site-packages',
    '__pycache__', '.mypy_cache', '.pytest_cache',
}

SOURCE_EXTENSIONS = {'ts', 'tsx', 'js', 'jsx', 'py', 'java', 'go', 'rs'}

_BRACES = re.compile(r'\{([^{}]*)\}')


def expand_braces(pattern: str) -> List[str]:
    """Expand `*.{ts,js}` into `*.ts`, `*.js` (nested groups included)."""
    match = _BRACES.search(pattern)
    if not match:
        return [pattern]
    expanded = []
    for option in match.group(1).split(','):
        expanded.extend(expand_braces(pattern[:match.start()] + option + pattern[match.end():]))
    return expanded


def matches(rel_path: str, pattern: str) -> bool:
    """Glob match against a relative POSIX path.

    `*` crosses directory separators here, and a leading `**/` also
    matches at the root.
    """
    if fnmatchcase(rel_path, pattern):
        return True
    while pattern.startswith('**/'):
        pattern = pattern[3:]
        if fnmatchcase(rel_path, pattern):
            return True
    return False


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    return any(matches(rel_path, pattern) for pattern in patterns)


def get_file_extension(file_path: str) -> str:
    name = file_path.rsplit('/', 1)[-1]
    return name.rsplit('.', 1)[-1] if '.' in name else ''


def is_source_file(file_path: str) -> bool:
    return get_file_extension(file_path) in SOURCE_EXTENSIONS


class FileScanner:
    """Discover and read source files under a root directory."""

    def __init__(self, root_dir: str | Path):
        """Initialize scanner.

        Args:
            root_dir: Directory to scan

        Raises:
            ScanError: If root_dir is missing or not a readable directory
        """
        self.root = Path(root_dir).resolve()
        if not self.root.exists():
            raise ScanError(f"Root directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise ScanError(f"Root path is not a directory: {self.root}")
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise ScanError(f"Root directory is not readable: {self.root}")

    def scan(self, include: Sequence[str] = (), exclude: Sequence[str] = ()) -> List[str]:
        """Find files matching include and not matching exclude.

        User excludes are added to DEFAULT_EXCLUDE rather than replacing it.
        Only source files are returned, however broad the include globs.

        Returns:
            Sorted, deduplicated POSIX paths relative to the root
        """
        include_patterns = [p for pattern in (include or DEFAULT_INCLUDE) for p in expand_braces(pattern)]
        exclude_patterns = [p for pattern in (*DEFAULT_EXCLUDE, *exclude) for p in expand_braces(pattern)]

        found = set()

        def on_error(error: OSError):
            if Path(error.filename or '') == self.root:
                raise ScanError(f"Cannot read root directory {self.root}: {error.strerror}")

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=on_error):
            dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            for filename in filenames:
                rel_path = filename if rel_dir == '.' else f"{rel_dir}/{filename}"
                if not is_source_file(rel_path):
                    continue
                if matches_any(rel_path, include_patterns) and not matches_any(rel_path, exclude_patterns):
                    found.add(rel_path)

        return sorted(found)

    def read_content(self, rel_path: str) -> str:
        """Read a scanned file as UTF-8 text.

        Raises:
            OSError: If the file cannot be read
            UnicodeDecodeError: If the file is not valid UTF-8
        """
        with open(self.root / rel_path, 'r', encoding='utf-8', newline='') as f:
            return f.read()
