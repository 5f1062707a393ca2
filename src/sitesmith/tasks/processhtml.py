"""Path rewrite: post-process expanded pages for their deployed location.

Build blocks are HTML comments wrapping markup that only makes sense in the
source layout::

    <!-- build:css css/style.min.css -->
    <link rel="stylesheet" href="../src/css/a.css">
    <link rel="stylesheet" href="../src/css/b.css">
    <!-- /build -->

Block types: `js` and `css` emit a single tag for the given path, `remove`
drops the block, `replace` substitutes the literal value. A block written as
`build:<type>:<target>` only applies when the task target matches.

Optionally, a `rewrite` mapping replaces `src`/`href` attribute prefixes.
Both transformations are idempotent: blocks disappear after the first run,
and no replacement prefix may itself start with a rewritten prefix.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from ..definitions import TaskDefinition
from ..errors import ConfigurationError
from .base import TaskContext, resolve_inputs, step_result, write_if_changed

logger = logging.getLogger(__name__)

BLOCK_RE = re.compile(
    r"(?P<indent>[ \t]*)<!--\s*build:(?P<type>[\w-]+)(?::(?P<target>[\w-]+))?"
    r"(?:\s+(?P<value>.*?))?\s*-->"
    r"(?P<body>.*?)"
    r"<!--\s*/build\s*-->",
    re.DOTALL,
)
ATTR_RE = re.compile(r"(?<=\s)(?P<attr>src|href)=(?P<quote>[\"'])(?P<url>.*?)(?P=quote)")


def render_block(block_type: str, value: str, indent: str) -> str | None:
    """Render the replacement for a build block, or None for unknown types."""
    if block_type == "js":
        return f'{indent}<script src="{value}"></script>'
    if block_type == "css":
        return f'{indent}<link rel="stylesheet" href="{value}">'
    if block_type == "remove":
        return ""
    if block_type == "replace":
        return f"{indent}{value}"
    return None


def process_blocks(html: str, target: str) -> str:
    """Replace every applicable build block in a document."""

    def _replace(match: re.Match[str]) -> str:
        block_target = match.group("target")
        if block_target and block_target != target:
            return match.group(0)
        block_type = match.group("type")
        rendered = render_block(block_type, (match.group("value") or "").strip(), match.group("indent"))
        if rendered is None:
            logger.warning("Unknown build block type %r left untouched", block_type)
            return match.group(0)
        return rendered

    return BLOCK_RE.sub(_replace, html)


def rewrite_attributes(html: str, rewrite: Mapping[str, str]) -> str:
    """Rewrite `src`/`href` prefixes; the first matching prefix wins."""
    if not rewrite:
        return html

    def _replace(match: re.Match[str]) -> str:
        url = match.group("url")
        for old, new in rewrite.items():
            if url.startswith(old):
                url = new + url[len(old) :]
                break
        return f"{match.group('attr')}={match.group('quote')}{url}{match.group('quote')}"

    return ATTR_RE.sub(_replace, html)


def validate_processhtml(task: TaskDefinition) -> None:
    """Reject rewrite maps that would not be idempotent."""
    rewrite = task.option("rewrite") or {}
    if not isinstance(rewrite, Mapping):
        raise ConfigurationError(f"{task.name}: 'rewrite' must be a mapping of prefixes")
    for old, new in rewrite.items():
        if not old:
            raise ConfigurationError(f"{task.name}: rewrite prefixes must be non-empty")
        for other in rewrite:
            if str(new).startswith(other):
                raise ConfigurationError(
                    f"{task.name}: rewrite {old!r} -> {new!r} would be rewritten again by {other!r}"
                )


class ProcessHtmlTask:
    """Apply build blocks and prefix rewrites to documents in place."""

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        rewrite = task.option("rewrite") or {}
        items: list[dict[str, Any]] = []
        for document in resolve_inputs(task, context):
            original = document.read_text(encoding="utf-8")
            processed = rewrite_attributes(process_blocks(original, task.target), rewrite)
            written = processed != original and write_if_changed(document, processed)
            items.append({"item": context.rel(document), "status": "rewritten" if written else "unchanged"})

        rewritten = sum(1 for item in items if item["status"] == "rewritten")
        logger.info("Processed %d document(s), %d rewritten", len(items), rewritten)
        return step_result(items, message=f"{rewritten} of {len(items)} document(s) rewritten")
