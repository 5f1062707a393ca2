"""Style tasks: the LESS -> prefix -> minify pipeline and standalone minification."""

from __future__ import annotations

import logging
from typing import Any

from ..css.autoprefix import autoprefix, parse_browsers
from ..css.less import compile_less
from ..css.minify import minify_css, normalize_special_comments
from ..definitions import TaskDefinition
from ..errors import ConfigurationError
from .base import TaskContext, resolve_inputs, step_result, write_if_changed

logger = logging.getLogger(__name__)


def validate_cssflow(task: TaskDefinition) -> None:
    if len(task.inputs) != 1:
        raise ConfigurationError(f"{task.name}: expects exactly one entry stylesheet, got {len(task.inputs)}")
    browsers = task.option("browsers")
    if browsers is not None:
        parse_browsers(browsers)
    normalize_special_comments(task.option("keep_special_comments", 0))


def validate_cssmin(task: TaskDefinition) -> None:
    normalize_special_comments(task.option("keep_special_comments", 0))


class CssFlowTask:
    """Compile the entry stylesheet, prefix it for the browser matrix, minify it."""

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        entry = context.base_dir(task) / task.inputs[0]
        output = context.resolve(task.outputs[0])
        browsers = task.option("browsers") or context.config.browsers
        keep = normalize_special_comments(task.option("keep_special_comments", 0))

        css = compile_less(entry)
        if task.option("autoprefix", True):
            css = autoprefix(css, browsers)
        if task.option("minify", True):
            css = minify_css(css, keep_special_comments=keep)

        written = write_if_changed(output, css)
        logger.info("Compiled %s -> %s (%d bytes)", context.rel(entry), context.rel(output), len(css))
        return step_result(
            [
                {
                    "item": context.rel(entry),
                    "status": "written" if written else "unchanged",
                    "output": context.rel(output),
                }
            ]
        )


class CssMinTask:
    """Minify stylesheets; several inputs are combined into the single output."""

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        sources = resolve_inputs(task, context)
        output = context.resolve(task.outputs[0])
        keep = normalize_special_comments(task.option("keep_special_comments", 0))
        if not sources:
            return step_result(message="No stylesheets to minify")

        combined = "\n".join(path.read_text(encoding="utf-8") for path in sources)
        minified = minify_css(combined, keep_special_comments=keep)
        written = write_if_changed(output, minified)
        saved = len(combined.encode("utf-8")) - len(minified.encode("utf-8"))
        logger.info("Minified %d stylesheet(s) into %s, saved %d bytes", len(sources), context.rel(output), saved)
        return step_result(
            [
                {
                    "item": context.rel(path),
                    "status": "written" if written else "unchanged",
                    "output": context.rel(output),
                }
                for path in sources
            ],
            message=f"Saved {saved} bytes",
        )
