"""Include expansion: flatten page templates that reference reusable fragments.

A template line of the form::

    include "header"

is replaced by the (recursively expanded) content of the fragment. The
directive's indentation is re-applied to every non-blank fragment line.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from ..definitions import TaskDefinition
from ..errors import ConfigurationError, MissingInputError
from .base import TaskContext, resolve_inputs, step_result, write_if_changed

logger = logging.getLogger(__name__)

INCLUDE_RE = re.compile(r'^(?P<indent>[ \t]*)include\s+(?P<quote>["\'])(?P<name>[^"\']+)(?P=quote)\s*$')


class IncludeExpander:
    """Expand include directives with cycle detection.

    Args:
        include_paths: Directories searched for fragments after the including
            file's own directory.
        duplicates: If False, a fragment already emitted into the current
            output is not emitted again.
    """

    def __init__(self, include_paths: list[Path], *, duplicates: bool = True) -> None:
        self.include_paths = list(include_paths)
        self.duplicates = duplicates

    def expand(self, template: Path) -> str:
        """Return the fully expanded content of a template."""
        return self._expand(template, template, (template.resolve(),), set())

    def find_fragment(self, name: str, including: Path) -> Path | None:
        """Locate a fragment by name, trying the including file's suffix when absent."""
        candidates = [name]
        if not Path(name).suffix and including.suffix:
            candidates.append(name + including.suffix)
        for directory in [including.parent, *self.include_paths]:
            for candidate in candidates:
                path = directory / candidate
                if path.is_file():
                    return path
        return None

    def _expand(
        self,
        path: Path,
        template: Path,
        chain: tuple[Path, ...],
        emitted: set[Path],
    ) -> str:
        out: list[str] = []
        for line in path.read_text(encoding="utf-8").splitlines(keepends=True):
            match = INCLUDE_RE.match(line.rstrip("\r\n"))
            if match is None:
                out.append(line)
                continue

            name = match.group("name")
            fragment = self.find_fragment(name, path)
            if fragment is None:
                referrer = template.name
                if path != template:
                    referrer = f"{path.name} (in {template.name})"
                raise MissingInputError(name, referrer=referrer)

            key = fragment.resolve()
            if key in chain:
                cycle = " -> ".join(p.name for p in (*chain, key))
                raise ConfigurationError(f"include cycle detected: {cycle}")
            if not self.duplicates and key in emitted:
                logger.debug("Skipping duplicate fragment %s in %s", fragment.name, template.name)
                continue
            emitted.add(key)

            body = self._expand(fragment, template, (*chain, key), emitted)
            indent = match.group("indent")
            lines = body.splitlines(keepends=True)
            out.extend(indent + part if part.strip() else part for part in lines)
            if lines and not lines[-1].endswith("\n") and line.endswith("\n"):
                out.append("\n")
        return "".join(out)


class IncludesTask:
    """Expand every matched template into the destination directory."""

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        base = context.base_dir(task)
        dest = context.resolve(task.outputs[0])
        flatten = bool(task.option("flatten", False))
        include_paths = [context.resolve(p) for p in _as_list(task.option("include_path"))]
        expander = IncludeExpander(include_paths, duplicates=bool(task.option("duplicates", True)))

        items: list[dict[str, Any]] = []
        seen_outputs: dict[Path, Path] = {}
        for template in resolve_inputs(task, context):
            target = dest / (template.name if flatten else template.relative_to(base))
            if target in seen_outputs:
                raise ConfigurationError(
                    f"{task.name}: {context.rel(template)} and {context.rel(seen_outputs[target])} "
                    f"both flatten to {context.rel(target)}"
                )
            seen_outputs[target] = template

            content = expander.expand(template)
            written = write_if_changed(target, content)
            items.append(
                {
                    "item": context.rel(template),
                    "status": "written" if written else "unchanged",
                    "output": context.rel(target),
                }
            )

        logger.info("Expanded %d template(s) into %s", len(items), context.rel(dest))
        message = None if items else "No templates matched"
        return step_result(items, message=message)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)
