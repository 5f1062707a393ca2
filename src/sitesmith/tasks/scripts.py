"""Script tasks: lint, concatenate and minify."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..definitions import TaskDefinition
from ..errors import ConfigurationError, LintViolationError, MissingInputError
from ..js.lint import lint_file
from ..js.minify import minify_js, render_banner
from .base import TaskContext, resolve_inputs, step_result, write_if_changed

logger = logging.getLogger(__name__)


def validate_concat(task: TaskDefinition) -> None:
    order = task.option("order") or []
    if isinstance(order, str) or not all(isinstance(p, str) for p in order):
        raise ConfigurationError(f"{task.name}: 'order' must be a list of paths")


class JsHintTask:
    """Report lint violations without modifying files.

    Violations are advisory: the step succeeds and lists them under
    `failures`. With the `strict` option, or in a CI context, they raise
    `LintViolationError` and abort the pipeline.
    """

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        files = resolve_inputs(task, context, required=False)
        if not files:
            logger.warning("%s: no files to lint for %s", task.name, ", ".join(task.inputs))
            return step_result(message="No files to lint")

        items: list[dict[str, Any]] = []
        failures: list[dict[str, str]] = []
        for path in files:
            violations = lint_file(path, task.options, display_name=context.rel(path))
            for violation in violations:
                logger.warning("%s", violation)
                failures.append({"item": f"{violation.file}:{violation.line}", "reason": f"[{violation.rule}] {violation.message}"})
            items.append(
                {
                    "item": context.rel(path),
                    "status": "clean" if not violations else f"{len(violations)} violation(s)",
                }
            )

        strict = bool(task.option("strict", False)) or context.ci
        if failures and strict:
            raise LintViolationError([f"{f['item']} {f['reason']}" for f in failures])

        message = f"{len(failures)} lint violation(s)" if failures else f"{len(files)} file(s) lint free"
        return step_result(items, failures=failures, message=message, lint_violations=len(failures))


class ConcatTask:
    """Concatenate scripts into one bundle.

    Files listed in the `order` option come first, in that order; the rest of
    the glob matches follow in sorted order.
    """

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        output = context.resolve(task.outputs[0])
        sources = self.ordered_sources(task, context)
        separator = task.option("separator", "\n")
        banner = task.option("banner", "")

        parts = [path.read_text(encoding="utf-8") for path in sources]
        bundle = banner + separator.join(parts)
        written = write_if_changed(output, bundle)
        logger.info("Concatenated %d file(s) into %s", len(sources), context.rel(output))
        return step_result(
            [{"item": context.rel(path), "status": "bundled"} for path in sources],
            message=None if sources else "No scripts matched",
            output=context.rel(output),
            written=written,
        )

    @staticmethod
    def ordered_sources(task: TaskDefinition, context: TaskContext) -> list[Path]:
        base = context.base_dir(task)
        ordered: list[Path] = []
        for rel in task.option("order") or []:
            path = base / rel
            if not path.is_file():
                raise MissingInputError(rel, referrer=task.name)
            ordered.append(path)
        explicit = {p.resolve() for p in ordered}
        for path in resolve_inputs(task, context, required=False):
            if path.resolve() not in explicit:
                ordered.append(path)
        return ordered


class UglifyTask:
    """Minify scripts into the output file, prefixed with a banner."""

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        sources = resolve_inputs(task, context)
        if not sources:
            raise MissingInputError(", ".join(task.inputs), referrer=task.name)
        output = context.resolve(task.outputs[0])

        script = "\n".join(path.read_text(encoding="utf-8") for path in sources)
        banner = render_banner(task.option("banner", ""), now=context.clock(), project=context.config.project)
        minified = banner + minify_js(script)
        written = write_if_changed(output, minified)
        logger.info("Minified %s -> %s (%d -> %d bytes)", ", ".join(context.rel(p) for p in sources), context.rel(output), len(script), len(minified))
        return step_result(
            [
                {"item": context.rel(path), "status": "written" if written else "unchanged", "output": context.rel(output)}
                for path in sources
            ]
        )
