"""Pipeline composition: resolve aliases into steps and run them in order.

A pipeline is an ordered list of names. Each name is either another pipeline
(expanded in place), a `kind:target` task, or a bare kind, which stands for
every target of that kind in declaration order. Steps run sequentially; the
first failing step aborts the pipeline and nothing after it runs.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .definitions import TaskDefinition
from .errors import BuildError, ConfigurationError, PipelineError
from .tasks import TASK_REGISTRY, TaskContext, TaskKind, get_task_kind

if TYPE_CHECKING:
    from .config import BuildConfig

logger = logging.getLogger(__name__)


def resolve_steps(
    tasks: Mapping[str, TaskDefinition],
    pipelines: Mapping[str, tuple[str, ...]],
    name: str,
) -> list[TaskDefinition]:
    """Expand a pipeline, task or bare kind into an ordered list of tasks.

    Pipeline names take precedence over task names.

    Raises:
        ConfigurationError: If a name is unknown or pipelines reference each
            other in a cycle.
    """
    steps: list[TaskDefinition] = []

    def _expand(current: str, chain: tuple[str, ...]) -> None:
        if current in pipelines:
            if current in chain:
                cycle = " -> ".join((*chain[chain.index(current) :], current))
                raise ConfigurationError(f"pipeline cycle detected: {cycle}")
            for step in pipelines[current]:
                _expand(step, (*chain, current))
        elif current in tasks:
            steps.append(tasks[current])
        else:
            targets = [task for task in tasks.values() if task.kind == current]
            if not targets:
                where = f" (in pipeline '{chain[-1]}')" if chain else ""
                raise ConfigurationError(f"Unknown task or pipeline: {current!r}{where}")
            steps.extend(targets)

    _expand(name, ())
    return steps


class Composer:
    """Run pipelines of one build configuration.

    Args:
        config: Validated build configuration.
        registry: Task kinds available to the steps.
        clock: Current-time source passed to the tasks (banners).
    """

    def __init__(
        self,
        config: BuildConfig,
        registry: Mapping[str, TaskKind] = TASK_REGISTRY,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.clock = clock or datetime.now

    def context(self) -> TaskContext:
        return TaskContext(self.config, clock=self.clock, ci=self.config.ci)

    def resolve(self, name: str) -> list[TaskDefinition]:
        """Return the steps a pipeline or task name expands to."""
        return resolve_steps(self.config.tasks, self.config.pipelines, name)

    def run_step(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        """Run a single task through its registered implementation."""
        kind = get_task_kind(task.kind, self.registry)
        return kind.runner.run(task, context)

    def run(self, name: str) -> dict[str, Any]:
        """Run a pipeline (or a single task) to completion.

        Args:
            name: Pipeline alias, `kind:target` or bare kind.

        Returns:
            Aggregate result: one item per step, per-step results under
            `steps`, the number of reported warnings and elapsed seconds.

        Raises:
            ConfigurationError: If the name does not resolve.
            PipelineError: If a step raises or reports failure. Wraps the
                step's exception; later steps are not run.
        """
        steps = self.resolve(name)
        context = self.context()
        logger.info("Running %s: %s", name, ", ".join(task.name for task in steps))

        started = time.perf_counter()
        items: list[dict[str, Any]] = []
        step_results: dict[str, dict[str, Any]] = {}
        warnings = 0
        for task in steps:
            logger.info("Starting %s", task.name)
            step_started = time.perf_counter()
            try:
                result = self.run_step(task, context)
            except Exception as exc:
                logger.error("%s failed: %s", task.name, exc)
                raise PipelineError(name, task.name, exc) from exc
            if not result.get("success", True):
                cause = BuildError(result.get("message") or "step reported failure")
                logger.error("%s failed: %s", task.name, cause)
                raise PipelineError(name, task.name, cause)

            elapsed = time.perf_counter() - step_started
            warnings += len(result.get("failures") or [])
            step_results[task.name] = result
            items.append(
                {
                    "item": task.name,
                    "status": "done",
                    "detail": result.get("message") or f"{result.get('succeeded', 0)} item(s)",
                }
            )
            logger.info("Finished %s in %.2fs", task.name, elapsed)

        elapsed_s = time.perf_counter() - started
        logger.info("%s finished: %d step(s) in %.2fs", name, len(steps), elapsed_s)
        return {
            "success": True,
            "pipeline": name,
            "total": len(steps),
            "succeeded": len(steps),
            "failed": 0,
            "skipped": 0,
            "items": items,
            "failures": [],
            "steps": step_results,
            "warnings": warnings,
            "message": f"{warnings} warning(s)" if warnings else None,
            "elapsed_s": elapsed_s,
        }
