"""Stylesheet collaborators: LESS compilation, vendor prefixing, minification
and unused-selector removal.

Task modules call these functions; none of them know about task definitions.
"""

from .autoprefix import autoprefix, parse_browsers
from .less import compile_less
from .minify import minify_css
from .uncss import reduce_stylesheet

__all__ = [
    "autoprefix",
    "compile_less",
    "minify_css",
    "parse_browsers",
    "reduce_stylesheet",
]
