"""Script collaborators: linting and minification."""

from .lint import LintViolation, lint_file, lint_source
from .minify import minify_js, render_banner

__all__ = [
    "LintViolation",
    "lint_file",
    "lint_source",
    "minify_js",
    "render_banner",
]
