"""Unused-selector removal over the stylesheets linked from sampled documents."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from ..css.uncss import parse_document, reduce_stylesheet
from ..definitions import TaskDefinition
from ..errors import ConfigurationError, MissingInputError
from .base import TaskContext, resolve_inputs, step_result, write_if_changed

logger = logging.getLogger(__name__)

_REMOTE_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:)?//", re.IGNORECASE)


def validate_uncss(task: TaskDefinition) -> None:
    for pattern in task.option("ignore_sheets") or []:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ConfigurationError(f"{task.name}: invalid ignore_sheets pattern {pattern!r}: {exc}") from exc


def _stylesheet_links(soup) -> list[str]:
    hrefs: list[str] = []
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        href = link.get("href")
        if href and "stylesheet" in (r.lower() for r in rel):
            hrefs.append(href)
    return hrefs


class UncssTask:
    """Reduce the linked stylesheets to the selectors the documents use.

    Sheets matching an `ignore_sheets` pattern are passed through unmodified:
    local ones verbatim, remote ones as an `@import`. Remote sheets that are
    not ignored cannot be analysed offline and are skipped with a warning.
    """

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        documents = resolve_inputs(task, context)
        if not documents:
            raise MissingInputError(", ".join(task.inputs), referrer=task.name)
        output = context.resolve(task.outputs[0])
        ignore = [re.compile(p) for p in task.option("ignore_sheets") or []]

        soups = []
        sheets: list[tuple[str, Path | None, str]] = []
        seen: set[str] = set()
        for document in documents:
            soup = parse_document(document.read_text(encoding="utf-8"))
            soups.append(soup)
            for href in _stylesheet_links(soup):
                sheets.append((href, document, context.rel(document)))
        for extra in task.option("stylesheets") or []:
            sheets.append((extra, None, task.name))

        imports: list[str] = []
        parts: list[str] = []
        items: list[dict[str, Any]] = []
        for href, document, referrer in sheets:
            ignored = any(p.search(href) for p in ignore)
            if _REMOTE_RE.match(href):
                if href in seen:
                    continue
                seen.add(href)
                if ignored:
                    imports.append(f'@import url("{href}");')
                    items.append({"item": href, "status": "ignored"})
                else:
                    logger.warning("Skipping remote stylesheet %s (cannot be analysed offline)", href)
                continue

            path = self._local_path(href, document, context)
            key = str(path)
            if key in seen:
                continue
            seen.add(key)
            if not path.is_file():
                raise MissingInputError(href, referrer=referrer)

            css = path.read_text(encoding="utf-8")
            if ignored:
                parts.append(css.strip())
                items.append({"item": context.rel(path), "status": "ignored"})
                continue
            reduced, removed = reduce_stylesheet(css, soups)
            parts.append(reduced)
            items.append(
                {"item": context.rel(path), "status": "reduced", "detail": f"{len(removed)} selector(s) removed"}
            )
            for selector in removed:
                logger.debug("Removed unused selector %s from %s", selector, context.rel(path))

        content = "\n".join([*imports, *(p for p in parts if p)]) + "\n"
        write_if_changed(output, content)
        logger.info("Wrote %s from %d stylesheet(s)", context.rel(output), len(items))
        return step_result(items, output=context.rel(output))

    @staticmethod
    def _local_path(href: str, document: Path | None, context: TaskContext) -> Path:
        href = href.split("?", 1)[0].split("#", 1)[0]
        if document is None or href.startswith("/"):
            return (context.root / href.lstrip("/")).resolve()
        return (document.parent / href).resolve()
