"""Stylesheet minification through rcssmin."""

from __future__ import annotations

import re
from typing import Any

import rcssmin

from ..errors import ConfigurationError

SPECIAL_COMMENT_RE = re.compile(r"/\*!.*?\*/", re.DOTALL)


def normalize_special_comments(value: Any) -> int | None:
    """Turn a `keep_special_comments` option into a count (None keeps all).

    Accepts a non-negative integer or "*".
    """
    if value is None or value == "*":
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(
            f"keep_special_comments must be a non-negative integer or '*', got {value!r}"
        )
    return value


def minify_css(css: str, *, keep_special_comments: int | None = 0) -> str:
    """Minify CSS, keeping at most `keep_special_comments` `/*! ... */` comments.

    Args:
        css: Stylesheet text.
        keep_special_comments: Number of leading special comments to keep;
            0 drops them all, None keeps every one.

    Returns:
        Minified stylesheet text.
    """
    if keep_special_comments == 0:
        return rcssmin.cssmin(css)

    minified = rcssmin.cssmin(css, keep_bang_comments=True)
    if keep_special_comments is None:
        return minified

    kept = 0

    def _limit(match: re.Match[str]) -> str:
        nonlocal kept
        if kept < keep_special_comments:
            kept += 1
            return match.group(0)
        return ""

    return SPECIAL_COMMENT_RE.sub(_limit, minified)
