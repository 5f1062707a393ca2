"""Global, project-wide configuration constants.

This module intentionally contains **no business logic** – only simple,
shared anchors and cross-cutting constants that many modules can import.

Site paths are kept relative (POSIX style) so they can be concatenated into
glob patterns the same way in every task definition. `sitesmith.config`
turns them into a `PathRegistry` bound to a concrete project root.
"""

from __future__ import annotations

from typing import Final

# Configuration inputs, looked up in the project root
CONFIG_FILENAME = "sitesmith.yaml"
PACKAGE_JSON_FILENAME = "package.json"

# Source base
SRC_DIR = "src"
# Destination base
BUILD_DIR = "dist"

# Relative layout under the source base
SITE_SUBDIR = "site"
INCLUDE_SUBDIR = "include"
PAGES_SUBDIR = "pages"
JS_SUBDIR = "js"
CSS_SUBDIR = "css"
LESS_SUBDIR = "less"
IMAGES_SUBDIR = "images"

# File names
LESS_ENTRY = "main.less"
STYLE_FILE = "style.css"
UNCSS_FILE = "style.uncss.css"
UNCSS_MIN_FILE = "style.uncss.min.css"
SCRIPT_FILE = "script.js"
SCRIPT_MIN_FILE = "script.min.js"
IMAGE_EXTENSIONS: Final[tuple[str, ...]] = ("png", "jpg", "gif")

# Browser matrix for vendor prefixing
AP_BROWSERS: Final[tuple[str, ...]] = (
    "Android >= 4",
    "Chrome >= 35",
    "Firefox >= 35",
    "Explorer >= 7",
    "iOS >= 6",
    "Opera >= 20",
    "Safari >= 9",
)

# Script bundle banner; {date} uses BANNER_DATE_FORMAT
BANNER_TEMPLATE = "/*! {date} */\n"
BANNER_DATE_FORMAT = "%d-%m-%Y %H:%M"

# Stylesheets matching these patterns are never reduced by uncss
UNCSS_IGNORE_SHEETS: Final[tuple[str, ...]] = ("fonts.googleapis",)

JPEG_QUALITY = 75

# Watch dispatcher
WATCH_SETTLE_S = 0.2
WATCH_POLL_S = 0.5

# Environment variable that marks a non-interactive (CI) run
CI_ENV_VAR = "CI"
