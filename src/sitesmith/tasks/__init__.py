# src/sitesmith/tasks/__init__.py
"""Task kinds and their static registry.

Every kind a configuration may reference is listed in `TASK_REGISTRY`; there
is no discovery at runtime. Adding a kind means adding its implementation
module and one registry entry.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Final

from ..errors import ConfigurationError
from .base import TaskContext, TaskKind, resolve_inputs, step_result
from .clean import CleanTask
from .copy import CopyTask
from .images import ImageMinTask, validate_imagemin
from .includes import IncludesTask
from .processhtml import ProcessHtmlTask, validate_processhtml
from .scripts import ConcatTask, JsHintTask, UglifyTask, validate_concat
from .styles import CssFlowTask, CssMinTask, validate_cssflow, validate_cssmin
from .uncss import UncssTask, validate_uncss
from .watch import WatchTask

TASK_REGISTRY: Final[dict[str, TaskKind]] = {
    "clean": TaskKind(
        kind="clean",
        capability="cleaner",
        runner=CleanTask(),
        description="Delete generated files matching the globs",
        writes_inputs=True,
    ),
    "includes": TaskKind(
        kind="includes",
        capability="transformer",
        runner=IncludesTask(),
        description="Expand include fragments into standalone pages",
        needs_outputs=1,
    ),
    "processhtml": TaskKind(
        kind="processhtml",
        capability="transformer",
        runner=ProcessHtmlTask(),
        description="Rewrite build blocks and asset paths for deployment",
        writes_inputs=True,
        validate=validate_processhtml,
    ),
    "cssflow": TaskKind(
        kind="cssflow",
        capability="transformer",
        runner=CssFlowTask(),
        description="Compile LESS, add vendor prefixes, minify",
        needs_outputs=1,
        validate=validate_cssflow,
    ),
    "copy": TaskKind(
        kind="copy",
        capability="transformer",
        runner=CopyTask(),
        description="Copy files into an output directory",
        needs_outputs=1,
    ),
    "uncss": TaskKind(
        kind="uncss",
        capability="minifier",
        runner=UncssTask(),
        description="Remove selectors no sampled document uses",
        needs_outputs=1,
        validate=validate_uncss,
    ),
    "cssmin": TaskKind(
        kind="cssmin",
        capability="minifier",
        runner=CssMinTask(),
        description="Minify stylesheets",
        needs_outputs=1,
        validate=validate_cssmin,
    ),
    "jshint": TaskKind(
        kind="jshint",
        capability="transformer",
        runner=JsHintTask(),
        description="Lint scripts (advisory unless strict or CI)",
    ),
    "concat": TaskKind(
        kind="concat",
        capability="bundler",
        runner=ConcatTask(),
        description="Concatenate scripts in a stable order",
        needs_outputs=1,
        validate=validate_concat,
    ),
    "uglify": TaskKind(
        kind="uglify",
        capability="minifier",
        runner=UglifyTask(),
        description="Minify the script bundle and prepend a banner",
        needs_outputs=1,
    ),
    "imagemin": TaskKind(
        kind="imagemin",
        capability="minifier",
        runner=ImageMinTask(),
        description="Compress images (skips up-to-date outputs with 'newer')",
        needs_outputs=1,
        validate=validate_imagemin,
    ),
    "watch": TaskKind(
        kind="watch",
        capability="watcher",
        runner=WatchTask(),
        description="Re-run pipelines when sources change",
        needs_inputs=False,
    ),
}


def get_task_kind(kind: str, registry: Mapping[str, TaskKind] = TASK_REGISTRY) -> TaskKind:
    """Look up a task kind.

    Raises:
        ConfigurationError: If the kind is not registered.
    """
    try:
        return registry[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown task kind: {kind!r}. Known kinds: {', '.join(sorted(registry))}"
        ) from None


def registry_for(kinds: Iterable[str]) -> dict[str, TaskKind]:
    """Return a registry restricted to the given kinds."""
    return {kind: get_task_kind(kind) for kind in kinds}


__all__ = [
    "TASK_REGISTRY",
    "TaskContext",
    "TaskKind",
    "get_task_kind",
    "registry_for",
    "resolve_inputs",
    "step_result",
]
