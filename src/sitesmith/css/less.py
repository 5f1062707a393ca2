"""LESS compilation through lesscpy."""

from __future__ import annotations

import logging
import re
from contextlib import redirect_stderr
from io import StringIO
from pathlib import Path

import lesscpy

from ..errors import ExternalToolError, MissingInputError

logger = logging.getLogger(__name__)

# lesscpy reports e.g. "E: /abs/src/less/_forms.less line: 12, Syntax Error, token: ..."
_LOCATION_RE = re.compile(r"(?:E:\s*(?P<file>\S+?)\s+)?line:?\s*(?P<line>\d+)", re.IGNORECASE)
_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def error_location(message: str) -> tuple[str | None, int | None]:
    """Extract (file, line) from a compiler error message.

    Returns:
        Tuple of file (or None) and 1-based line number (or None).
    """
    match = _LOCATION_RE.search(message)
    if match is None:
        return None, None
    return match.group("file"), int(match.group("line"))


def _tool_error(message: str, entry: Path) -> ExternalToolError:
    file, line = error_location(message)
    return ExternalToolError("less", message.splitlines()[0], file=file or entry, line=line)


def compile_less(entry: Path) -> str:
    """Compile a LESS entry file (and everything it imports) into plain CSS.

    Imports are resolved relative to the entry file. Errors inside imported
    files are only printed by the compiler, so its diagnostic output is
    captured and an `E:` line is raised like any other compile failure.

    Args:
        entry: Path to the entry stylesheet.

    Returns:
        Compiled CSS text.

    Raises:
        MissingInputError: If the entry file does not exist.
        ExternalToolError: If the compiler rejects the source; carries the
            file and line reported by the compiler when available.
    """
    if not entry.is_file():
        raise MissingInputError(entry)

    logger.debug("Compiling %s", entry)
    diagnostics = StringIO()
    try:
        with entry.open(encoding="utf-8") as source, redirect_stderr(diagnostics):
            css = lesscpy.compile(source)
    except Exception as exc:  # noqa: BLE001
        message = str(exc).strip() or type(exc).__name__
        raise _tool_error(message, entry) from exc

    lines = [_ANSI_RE.sub("", line).strip() for line in diagnostics.getvalue().splitlines()]
    for line in lines:
        if line.startswith("E:"):
            raise _tool_error(line, entry)
    for line in filter(None, lines):
        logger.warning("less: %s", line)
    return css
