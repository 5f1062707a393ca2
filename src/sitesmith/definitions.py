"""Immutable records shared by the configuration, the composer and the tasks."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TaskDefinition:
    """A single configured build step.

    Attributes:
        kind: Registered task kind (e.g. "clean", "concat").
        target: Target name within the kind (e.g. "build", "stylesbuild").
        inputs: Input glob patterns, relative to `cwd` (or the project root).
        outputs: Output paths, relative to the project root. Empty for tasks
            that work in place or only report.
        cwd: Optional base directory for the input globs, relative to the
            project root.
        options: Kind-specific options.
    """

    kind: str
    target: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    cwd: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.kind}:{self.target}"

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass(frozen=True)
class WatchBinding:
    """Maps a watched glob set to a pipeline.

    Attributes:
        name: Binding name (e.g. "styles").
        globs: Watched glob patterns, relative to the project root.
        pipeline: Pipeline or task name dispatched on a match. None for
            reload bindings.
        reload: If True, a match restarts the whole watch session with a
            freshly loaded configuration instead of running a pipeline.
    """

    name: str
    globs: tuple[str, ...]
    pipeline: str | None = None
    reload: bool = False


@dataclass(frozen=True)
class ProjectMetadata:
    """Informational project metadata (used by banners and the CLI)."""

    name: str = "site"
    version: str = "0.0.0"
    description: str = ""
