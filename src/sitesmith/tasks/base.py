"""Capability interfaces and shared helpers for task implementations.

Every task kind implements exactly one capability. The composer only relies on
the common `run(task, context) -> dict` shape; the capability is recorded in
the registry so tools (the `tree` command, validation) can reason about what a
step does to the destination tree.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Protocol

from ..definitions import TaskDefinition
from ..errors import MissingInputError
from ..utils.globs import expand_braces, expand_globs, has_magic, normalize_pattern, split_negations

if TYPE_CHECKING:
    from ..config import BuildConfig, PathRegistry

Capability = Literal["cleaner", "transformer", "bundler", "minifier", "watcher"]


@dataclass
class TaskContext:
    """Everything a task needs besides its own definition.

    Attributes:
        config: The loaded build configuration.
        clock: Returns the current time; injectable for reproducible banners.
        ci: True for non-interactive runs (lint violations become fatal).
    """

    config: BuildConfig
    clock: Callable[[], datetime] = datetime.now
    ci: bool = False

    @property
    def root(self) -> Path:
        return self.config.root

    @property
    def paths(self) -> PathRegistry:
        return self.config.paths

    def resolve(self, rel: str) -> Path:
        """Resolve a project-relative path."""
        return self.root / normalize_pattern(rel)

    def base_dir(self, task: TaskDefinition) -> Path:
        """Directory the task's input globs are relative to."""
        return self.resolve(task.cwd) if task.cwd else self.root

    def rel(self, path: Path) -> str:
        """Render a path relative to the project root for messages and results."""
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)


class Cleaner(Protocol):
    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]: ...


class Transformer(Protocol):
    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]: ...


class Bundler(Protocol):
    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]: ...


class Minifier(Protocol):
    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]: ...


class Watcher(Protocol):
    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]: ...


TaskRunner = Cleaner | Transformer | Bundler | Minifier | Watcher


@dataclass(frozen=True)
class TaskKind:
    """Registry entry for a task kind.

    Attributes:
        kind: Task kind name used in `kind:target` addresses.
        capability: Capability the implementation provides.
        runner: Implementation object.
        description: One-line description for the `tree` command.
        required_options: Option keys that must be configured.
        needs_inputs: If True, a definition without inputs is rejected.
        needs_outputs: Number of output paths the kind requires (0 = none).
        writes_inputs: If True, the kind deletes or rewrites the files its
            inputs match, so the inputs must lie in a writable directory.
        validate: Optional kind-specific validation hook, called at load time.
    """

    kind: str
    capability: Capability
    runner: TaskRunner
    description: str = ""
    required_options: tuple[str, ...] = ()
    needs_inputs: bool = True
    needs_outputs: int = 0
    writes_inputs: bool = False
    validate: Callable[[TaskDefinition], None] | None = field(default=None, compare=False)


def resolve_inputs(task: TaskDefinition, context: TaskContext, *, required: bool = True) -> list[Path]:
    """Expand a task's input globs.

    Args:
        task: Task definition.
        context: Task context.
        required: If True, literal (wildcard-free) inputs must exist.

    Returns:
        Matching files in stable order.

    Raises:
        MissingInputError: If a literal input does not exist and `required` is set.
    """
    base = context.base_dir(task)
    if required:
        positives, _ = split_negations(task.inputs)
        for pattern in positives:
            for expanded in expand_braces(normalize_pattern(pattern)):
                if expanded and not has_magic(expanded) and not (base / expanded).is_file():
                    raise MissingInputError(context.rel(base / expanded), referrer=task.name)
    return expand_globs(base, task.inputs)


def write_if_changed(path: Path, content: str | bytes) -> bool:
    """Write content to path unless the file already holds exactly that content.

    Returns:
        True if the file was written.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    if path.is_file() and path.read_bytes() == data:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return True


def step_result(
    items: Iterable[dict[str, Any]] = (),
    *,
    failures: Iterable[dict[str, Any]] = (),
    skipped: int = 0,
    message: str | None = None,
    success: bool = True,
    **extra: Any,
) -> dict[str, Any]:
    """Build a result dictionary in the shape the CLI formatter understands.

    Returns:
        Dict with success, total, succeeded, failed, skipped, message, items
        and failures, plus any extra keys.
    """
    items = list(items)
    failures = list(failures)
    result: dict[str, Any] = {
        "success": success,
        "total": len(items) + skipped,
        "succeeded": len(items),
        "failed": len(failures),
        "skipped": skipped,
        "items": items,
        "failures": failures,
    }
    if message:
        result["message"] = message
    result.update(extra)
    return result
