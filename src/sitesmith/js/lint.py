"""Static checks for script sources.

Scripts are parsed with esprima and walked generically; two rules exist:

- `curly`: bodies of if/else, for, for-in, for-of, while and do-while must be
  blocks.
- `undef`: every referenced identifier must be declared somewhere in the file,
  be a known browser/ECMAScript global, or be listed in `globals`. The check is
  file-scoped (declarations anywhere in the file count), which keeps it free of
  false positives from hoisting at the cost of missing some shadowing bugs.

A file that fails to parse yields a single violation at the reported line.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import esprima
from esprima.error_handler import Error as EsprimaError

logger = logging.getLogger(__name__)

KNOWN_GLOBALS: Final[frozenset[str]] = frozenset(
    {
        # ECMAScript
        "Array", "ArrayBuffer", "Boolean", "Date", "Error", "EvalError", "Function",
        "Infinity", "Intl", "JSON", "Map", "Math", "NaN", "Number", "Object", "Promise",
        "Proxy", "RangeError", "ReferenceError", "Reflect", "RegExp", "Set", "String",
        "Symbol", "SyntaxError", "TypeError", "URIError", "WeakMap", "WeakSet",
        "arguments", "decodeURI", "decodeURIComponent", "encodeURI", "encodeURIComponent",
        "eval", "isFinite", "isNaN", "parseFloat", "parseInt", "undefined",
        # Browser
        "alert", "cancelAnimationFrame", "clearInterval", "clearTimeout", "confirm",
        "console", "CustomEvent", "document", "Element", "Event", "fetch", "FormData",
        "history", "HTMLElement", "Image", "localStorage", "location", "navigator",
        "Node", "prompt", "requestAnimationFrame", "screen", "sessionStorage",
        "setInterval", "setTimeout", "URL", "URLSearchParams", "window", "XMLHttpRequest",
    }
)

_CURLY_FIELDS: Final[dict[str, tuple[str, ...]]] = {
    "IfStatement": ("consequent", "alternate"),
    "ForStatement": ("body",),
    "ForInStatement": ("body",),
    "ForOfStatement": ("body",),
    "WhileStatement": ("body",),
    "DoWhileStatement": ("body",),
}

# (parent type, field) pairs where an Identifier is a name, not a reference
_NON_REFERENCE_FIELDS: Final[frozenset[tuple[str, str]]] = frozenset(
    {
        ("LabeledStatement", "label"),
        ("BreakStatement", "label"),
        ("ContinueStatement", "label"),
        ("MethodDefinition", "key"),
    }
)

_SKIPPED_ATTRS = frozenset({"type", "loc", "range", "leadingComments", "trailingComments"})


@dataclass(frozen=True)
class LintViolation:
    """A single rule violation."""

    file: str
    line: int | None
    rule: str
    message: str

    def __str__(self) -> str:
        line = f":{self.line}" if self.line is not None else ""
        return f"{self.file}{line} [{self.rule}] {self.message}"


def _is_node(value: Any) -> bool:
    return isinstance(getattr(value, "type", None), str) and not isinstance(value, str)


def _children(node: Any) -> Iterator[tuple[str, Any]]:
    for key, value in vars(node).items():
        if key in _SKIPPED_ATTRS:
            continue
        if _is_node(value):
            yield key, value
        elif isinstance(value, list):
            for item in value:
                if _is_node(item):
                    yield key, item


def walk(node: Any, parent: Any = None, field: str | None = None) -> Iterator[tuple[Any, Any, str | None]]:
    """Yield (node, parent, field) for every node in the tree, depth first."""
    yield node, parent, field
    for key, child in _children(node):
        yield from walk(child, node, key)


def _line(node: Any) -> int | None:
    loc = getattr(node, "loc", None)
    start = getattr(loc, "start", None)
    return getattr(start, "line", None)


def _pattern_names(pattern: Any) -> Iterator[str]:
    if pattern is None:
        return
    kind = getattr(pattern, "type", None)
    if kind == "Identifier":
        yield pattern.name
    elif kind == "ObjectPattern":
        for prop in getattr(pattern, "properties", None) or []:
            yield from _pattern_names(getattr(prop, "value", None) or getattr(prop, "argument", None))
    elif kind == "ArrayPattern":
        for element in getattr(pattern, "elements", None) or []:
            yield from _pattern_names(element)
    elif kind == "AssignmentPattern":
        yield from _pattern_names(pattern.left)
    elif kind == "RestElement":
        yield from _pattern_names(pattern.argument)


def declared_names(tree: Any) -> set[str]:
    """Collect every name the file declares, regardless of scope."""
    names: set[str] = set()
    for node, _, _ in walk(tree):
        kind = node.type
        if kind == "VariableDeclarator":
            names.update(_pattern_names(node.id))
        elif kind in ("FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression"):
            if getattr(node, "id", None) is not None:
                names.update(_pattern_names(node.id))
            for param in getattr(node, "params", None) or []:
                names.update(_pattern_names(param))
        elif kind in ("ClassDeclaration", "ClassExpression") and getattr(node, "id", None) is not None:
            names.add(node.id.name)
        elif kind == "CatchClause":
            names.update(_pattern_names(getattr(node, "param", None)))
    return names


def check_curly(tree: Any, file: str) -> list[LintViolation]:
    violations: list[LintViolation] = []
    for node, _, _ in walk(tree):
        for field in _CURLY_FIELDS.get(node.type, ()):
            body = getattr(node, field, None)
            if body is None:
                continue
            if body.type == "BlockStatement":
                continue
            if field == "alternate" and body.type == "IfStatement":
                continue
            violations.append(
                LintViolation(
                    file=file,
                    line=_line(body) or _line(node),
                    rule="curly",
                    message=f"Expected '{{' around the {field} of {node.type}",
                )
            )
    return violations


def check_undef(tree: Any, file: str, globals_: Mapping[str, bool]) -> list[LintViolation]:
    known = declared_names(tree) | KNOWN_GLOBALS | set(globals_)
    reported: set[str] = set()
    violations: list[LintViolation] = []
    for node, parent, field in walk(tree):
        if node.type != "Identifier" or parent is None:
            continue
        parent_type = parent.type
        if (parent_type, field) in _NON_REFERENCE_FIELDS:
            continue
        if parent_type == "MemberExpression" and field == "property" and not getattr(parent, "computed", False):
            continue
        if parent_type == "Property" and field == "key" and not getattr(parent, "computed", False):
            continue
        name = node.name
        if name in known or name in reported:
            continue
        reported.add(name)
        violations.append(
            LintViolation(file=file, line=_line(node), rule="undef", message=f"'{name}' is not defined")
        )
    return violations


def lint_source(source: str, file: str, options: Mapping[str, Any]) -> list[LintViolation]:
    """Lint script source text.

    Args:
        source: Script text.
        file: Display name used in violations.
        options: Rule switches: `curly`, `undef` (bools) and `globals`
            (mapping of name -> writable flag).

    Returns:
        Violations in source order per rule.
    """
    try:
        tree = esprima.parseScript(source, {"loc": True})
    except EsprimaError as exc:
        line = getattr(exc, "lineNumber", None)
        message = getattr(exc, "description", None) or str(exc)
        return [LintViolation(file=file, line=line, rule="syntax", message=message)]

    violations: list[LintViolation] = []
    if options.get("curly", False):
        violations.extend(check_curly(tree, file))
    if options.get("undef", False):
        violations.extend(check_undef(tree, file, options.get("globals") or {}))
    violations.sort(key=lambda v: (v.line or 0, v.rule))
    return violations


def lint_file(path: Path, options: Mapping[str, Any], *, display_name: str | None = None) -> list[LintViolation]:
    """Lint a script file; see `lint_source`."""
    return lint_source(path.read_text(encoding="utf-8"), display_name or path.name, options)
