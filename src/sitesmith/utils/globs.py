"""Glob expansion and matching for task inputs and watch bindings.

Patterns are POSIX-style and relative to a base directory. Supported syntax:
- `*` and `?` within one path segment, `[...]` character classes
- `**` across segments (`src/**/*.less` also matches `src/main.less`)
- brace alternation, `*.{png,jpg,gif}`
- a leading `!` excludes matches from the preceding patterns
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

_MAGIC_CHARS = frozenset("*?[{")
_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def has_magic(pattern: str) -> bool:
    """Return True if the pattern contains any wildcard syntax."""
    return any(ch in _MAGIC_CHARS for ch in pattern)


def normalize_pattern(pattern: str) -> str:
    """Normalize separators and redundant segments (`src/js//*.js` -> `src/js/*.js`)."""
    pattern = pattern.strip().replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    if not pattern:
        return pattern
    trailing = "/" if pattern.endswith("/") else ""
    normalized = posixpath.normpath(pattern)
    return "" if normalized == "." else normalized + trailing


def expand_braces(pattern: str) -> list[str]:
    """Expand brace alternations into plain glob patterns.

    Example:
        >>> expand_braces("img/*.{png,jpg}")
        ['img/*.png', 'img/*.jpg']
    """
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    expanded: list[str] = []
    for alternative in match.group(1).split(","):
        expanded.extend(
            expand_braces(pattern[: match.start()] + alternative + pattern[match.end() :])
        )
    return expanded


def _translate(pattern: str) -> str:
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        elif pattern[i] == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(pattern[i]))
                i += 1
                continue
            body = pattern[i + 1 : end].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^" + body[1:]
            parts.append(f"[{body}]")
            i = end + 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return "".join(parts)


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> tuple[re.Pattern[str], ...]:
    """Compile a glob pattern (with braces) into anchored regular expressions."""
    normalized = normalize_pattern(pattern)
    return tuple(re.compile(_translate(p)) for p in expand_braces(normalized))


def match_glob(path: str | Path, pattern: str) -> bool:
    """Return True if a relative POSIX path matches the glob pattern."""
    candidate = Path(path).as_posix() if isinstance(path, Path) else path.replace("\\", "/")
    candidate = normalize_pattern(candidate)
    return any(regex.fullmatch(candidate) for regex in compile_glob(pattern))


def match_any(path: str | Path, patterns: Iterable[str]) -> bool:
    """Return True if the path matches any positive pattern and no negated one."""
    positives, negatives = split_negations(patterns)
    if not any(match_glob(path, p) for p in positives):
        return False
    return not any(match_glob(path, p) for p in negatives)


def split_negations(patterns: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split patterns into (positive, negated) lists; negations lose their `!`."""
    positives: list[str] = []
    negatives: list[str] = []
    for pattern in patterns:
        if pattern.startswith("!"):
            negatives.append(pattern[1:])
        else:
            positives.append(pattern)
    return positives, negatives


def static_prefix(pattern: str) -> str:
    """Return the leading path segments of a pattern that contain no wildcards."""
    segments: list[str] = []
    for segment in normalize_pattern(pattern).split("/"):
        if has_magic(segment):
            break
        segments.append(segment)
    return "/".join(segments)


def expand_globs(
    base: Path,
    patterns: Iterable[str],
    *,
    files_only: bool = True,
) -> list[Path]:
    """Expand glob patterns against a base directory.

    Matches are returned in pattern order; matches of a single pattern are
    sorted, so the result is stable across runs and filesystems. Duplicates
    keep their first position. A missing base directory yields no matches.

    Args:
        base: Directory the patterns are relative to.
        patterns: Glob patterns; `!pattern` entries remove earlier matches.
        files_only: If True, directories are never returned.

    Returns:
        List of matching paths (absolute if `base` is absolute).
    """
    positives, negatives = split_negations(patterns)
    found: dict[Path, None] = {}

    for pattern in positives:
        for expanded in expand_braces(normalize_pattern(pattern)):
            if not expanded:
                continue
            if has_magic(expanded):
                candidates = sorted(base.glob(expanded))
            else:
                literal = base / expanded
                candidates = [literal] if literal.exists() else []
            for candidate in candidates:
                if files_only and not candidate.is_file():
                    continue
                found.setdefault(candidate, None)

    if not negatives:
        return list(found)

    kept: list[Path] = []
    for candidate in found:
        rel = candidate.relative_to(base).as_posix()
        if not any(match_glob(rel, neg) for neg in negatives):
            kept.append(candidate)
    return kept


def is_within(path: Path, parent: Path) -> bool:
    """Return True if `path` resolves to `parent` or somewhere beneath it."""
    try:
        path.resolve().relative_to(parent.resolve())
    except ValueError:
        return False
    return True
