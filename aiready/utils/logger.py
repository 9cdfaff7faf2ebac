"""Logging setup and terminal-safe text for AIReady.

Loggers live under the ``aiready`` hierarchy and render through rich's
RichHandler. Unicode icons are swapped for ASCII on terminals that cannot
encode them.
"""
import locale
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "aiready"

# Unicode to ASCII icon mapping for non-UTF-8 terminals
ICON_MAP = {
    # Status icons
    '✓': '[OK]',
    '✔': '[OK]',
    '✗': '[FAIL]',
    '✘': '[FAIL]',
    '⚠': '[WARN]',
    '⚡': '[!]',

    # Arrows used in cycle chains
    '→': '->',
    '←': '<-',
    '⇒': '=>',
    '⟶': '->',

    # Symbols
    '…': '...',
    '•': '*',
    '×': 'x',
    '≥': '>=',
    '≤': '<=',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding ('utf-8', 'cp1252', 'ascii', ...)."""
    if getattr(sys.stdout, 'encoding', None):
        return sys.stdout.encoding.lower()
    encoding = locale.getpreferredencoding(False)
    return encoding.lower() if encoding else 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if the terminal needs it.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Text safe for the current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)
    return sanitized


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-scoped logger under the aiready hierarchy."""
    if not name:
        return logging.getLogger(_LOGGER_NAME)
    if name == _LOGGER_NAME or name.startswith(_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")


def configure_logging(*, verbose: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """Route aiready logs to stderr through rich.

    Args:
        verbose: Show debug records instead of warnings and above
        console: Console to render on (defaults to a stderr console)

    Returns:
        The configured root aiready logger
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process don't duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    return logger
