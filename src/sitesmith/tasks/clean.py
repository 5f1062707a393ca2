"""Clean step: remove previously generated output before regenerating it."""

from __future__ import annotations

import logging
import shutil
from typing import Any

from ..definitions import TaskDefinition
from ..errors import ConfigurationError
from ..utils.globs import expand_globs, is_within
from .base import TaskContext, step_result

logger = logging.getLogger(__name__)


class CleanTask:
    """Delete every file or directory matching the task's globs.

    Patterns are scoped to the destination tree (and declared staging
    directories). A pattern that matches nothing, including one whose parent
    directory does not exist yet, is a successful no-op.
    """

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        dry_run = bool(task.option("dry_run", False))
        allowed = context.config.writable_dirs()
        matches = expand_globs(context.root, task.inputs, files_only=False)

        # Refuse the whole step before deleting anything
        for path in matches:
            if not any(is_within(path, parent) for parent in allowed):
                raise ConfigurationError(
                    f"{task.name} matched {context.rel(path)}, which is outside the build tree"
                )

        items: list[dict[str, Any]] = []
        failures: list[dict[str, str]] = []
        files_deleted = 0
        directories_deleted = 0

        for path in matches:
            rel = context.rel(path)
            if dry_run:
                items.append({"item": rel, "status": "would delete"})
                continue
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                    directories_deleted += 1
                elif path.exists():
                    path.unlink()
                    files_deleted += 1
                else:
                    continue
            except OSError as exc:
                failures.append({"item": rel, "reason": f"Failed to delete: {exc}"})
                continue
            logger.debug("Deleted %s", rel)
            items.append({"item": rel, "status": "deleted"})

        if failures:
            # A half-cleaned tree must not be built upon
            raise OSError(
                f"{task.name} could not delete {len(failures)} path(s): "
                + ", ".join(f["item"] for f in failures)
            )

        if not matches:
            message = "Nothing to clean"
        elif dry_run:
            message = f"Would clean {len(matches)} path(s)"
        else:
            message = f"Cleaned {directories_deleted} directories and {files_deleted} files"

        return step_result(
            items,
            message=message,
            dry_run=dry_run,
            files_deleted=files_deleted,
            directories_deleted=directories_deleted,
        )
