"""Copy step: mirror matched files into an output directory."""

from __future__ import annotations

import logging
import shutil
from typing import Any

from ..definitions import TaskDefinition
from .base import TaskContext, resolve_inputs, step_result

logger = logging.getLogger(__name__)


class CopyTask:
    """Copy files matched under `cwd` to the output directory.

    The path relative to `cwd` is preserved unless `flatten` is set. Files
    whose destination already holds identical bytes are left untouched.
    """

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        base = context.base_dir(task)
        dest = context.resolve(task.outputs[0])
        flatten = bool(task.option("flatten", False))

        items: list[dict[str, Any]] = []
        skipped = 0
        for source in resolve_inputs(task, context):
            target = dest / (source.name if flatten else source.relative_to(base))
            if target.is_file() and target.read_bytes() == source.read_bytes():
                skipped += 1
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            items.append({"item": context.rel(source), "status": "copied", "output": context.rel(target)})

        logger.info("Copied %d file(s) to %s (%d unchanged)", len(items), context.rel(dest), skipped)
        return step_result(items, skipped=skipped)
