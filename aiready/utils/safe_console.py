"""Terminal-safe Console wrapper for Rich.

Wraps Rich's Console to sanitize Unicode icons on terminals that don't
support UTF-8.
"""
from typing import Any

from rich.console import Console

from .logger import is_utf8_capable, sanitize_for_terminal


class SafeConsole(Console):
    """Console that replaces Unicode icons with ASCII on non-UTF-8 terminals."""

    def __init__(self, *args, **kwargs):
        """All arguments are passed through to Rich's Console."""
        self._needs_sanitization = not is_utf8_capable()
        super().__init__(*args, **kwargs)

    def print(self, *objects: Any, **kwargs) -> None:
        """Print with automatic Unicode sanitization."""
        if self._needs_sanitization:
            objects = tuple(
                sanitize_for_terminal(obj) if isinstance(obj, str) else obj
                for obj in objects
            )
        super().print(*objects, **kwargs)
