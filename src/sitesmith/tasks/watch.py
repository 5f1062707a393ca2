"""Watch step: hand control to a watch session (blocks until it ends)."""

from __future__ import annotations

from typing import Any

from ..definitions import TaskDefinition
from .base import TaskContext, step_result


class WatchTask:
    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        from ..watch import run_watch

        sessions = run_watch(context.root, context.config.config_file)
        return step_result(message=f"Watch ended after {sessions} session(s)")
