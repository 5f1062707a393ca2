"""Utility modules.

This package provides shared utilities used across the codebase.
"""

from .globs import (
    expand_braces,
    expand_globs,
    has_magic,
    is_within,
    match_any,
    match_glob,
    normalize_pattern,
    split_negations,
    static_prefix,
)

__all__ = [
    # Glob utilities (task inputs and watch bindings)
    "expand_braces",
    "expand_globs",
    "has_magic",
    "is_within",
    "match_any",
    "match_glob",
    "normalize_pattern",
    "split_negations",
    "static_prefix",
]
