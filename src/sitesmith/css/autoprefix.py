"""Vendor prefixing for a configured browser support matrix.

The feature tables record, per vendor prefix, the *last* version of each
browser that still needs the prefix. A prefixed declaration is emitted when
the oldest supported version of at least one browser in the matrix is at or
below that threshold. Declarations that already carry the prefixed form are
left alone.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from typing import Final

import tinycss2

from ..errors import ConfigurationError
from .serialize import at_rule_head, parse_stylesheet_rules, split_declarations, split_rules

logger = logging.getLogger(__name__)

BrowserMatrix = dict[str, float]
Support = dict[str, float]

BROWSER_ALIASES: Final[dict[str, str]] = {
    "android": "android",
    "and_chr": "android",
    "chrome": "chrome",
    "edge": "edge",
    "explorer": "ie",
    "ie": "ie",
    "firefox": "firefox",
    "ff": "firefox",
    "ios": "ios",
    "ios_saf": "ios",
    "opera": "opera",
    "safari": "safari",
}

_QUERY_RE = re.compile(r"^\s*(?P<name>[A-Za-z_]+)\s*(?P<op>>=|>)\s*(?P<version>\d+(?:\.\d+)?)\s*$")

_FLEXBOX_WEBKIT: Support = {"chrome": 28, "safari": 8, "ios": 8.4, "android": 4.3, "opera": 16}
_TRANSFORM_WEBKIT: Support = {"chrome": 35, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 22}

PROPERTY_PREFIXES: Final[dict[str, dict[str, Support]]] = {
    "transform": {"-webkit-": _TRANSFORM_WEBKIT, "-ms-": {"ie": 9}, "-moz-": {"firefox": 15}, "-o-": {"opera": 12}},
    "transform-origin": {"-webkit-": _TRANSFORM_WEBKIT, "-ms-": {"ie": 9}, "-moz-": {"firefox": 15}},
    "transform-style": {"-webkit-": _TRANSFORM_WEBKIT, "-moz-": {"firefox": 15}},
    "perspective": {"-webkit-": _TRANSFORM_WEBKIT, "-moz-": {"firefox": 15}},
    "perspective-origin": {"-webkit-": _TRANSFORM_WEBKIT, "-moz-": {"firefox": 15}},
    "backface-visibility": {"-webkit-": {"chrome": 35, "safari": 15, "ios": 15, "android": 4.4, "opera": 22}, "-moz-": {"firefox": 15}},
    "transition": {"-webkit-": {"chrome": 25, "safari": 6, "ios": 6.1, "android": 4.3}, "-moz-": {"firefox": 15}, "-o-": {"opera": 12}},
    "transition-property": {"-webkit-": {"chrome": 25, "safari": 6, "ios": 6.1, "android": 4.3}, "-moz-": {"firefox": 15}, "-o-": {"opera": 12}},
    "transition-duration": {"-webkit-": {"chrome": 25, "safari": 6, "ios": 6.1, "android": 4.3}, "-moz-": {"firefox": 15}, "-o-": {"opera": 12}},
    "transition-timing-function": {"-webkit-": {"chrome": 25, "safari": 6, "ios": 6.1, "android": 4.3}, "-moz-": {"firefox": 15}},
    "transition-delay": {"-webkit-": {"chrome": 25, "safari": 6, "ios": 6.1, "android": 4.3}, "-moz-": {"firefox": 15}},
    "animation": {"-webkit-": {"chrome": 42, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 29}, "-moz-": {"firefox": 15}},
    "animation-name": {"-webkit-": {"chrome": 42, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 29}, "-moz-": {"firefox": 15}},
    "animation-duration": {"-webkit-": {"chrome": 42, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 29}, "-moz-": {"firefox": 15}},
    "animation-delay": {"-webkit-": {"chrome": 42, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 29}, "-moz-": {"firefox": 15}},
    "box-shadow": {"-webkit-": {"chrome": 9, "safari": 5, "ios": 4.3, "android": 3}, "-moz-": {"firefox": 3.6}},
    "border-radius": {"-webkit-": {"chrome": 4, "safari": 4, "ios": 3.2, "android": 2.1}, "-moz-": {"firefox": 3.6}},
    "box-sizing": {"-webkit-": {"chrome": 9, "safari": 5, "ios": 4.3, "android": 3}, "-moz-": {"firefox": 28}},
    "user-select": {"-webkit-": {"chrome": 53, "safari": 99, "ios": 99, "android": 4.4, "opera": 40}, "-moz-": {"firefox": 68}, "-ms-": {"ie": 11, "edge": 78}},
    "appearance": {"-webkit-": {"chrome": 83, "safari": 15, "ios": 15, "android": 4.4, "opera": 69}, "-moz-": {"firefox": 79}},
    "hyphens": {"-webkit-": {"safari": 99, "ios": 99}, "-moz-": {"firefox": 42}, "-ms-": {"ie": 11, "edge": 78}},
    "filter": {"-webkit-": {"chrome": 52, "safari": 9, "ios": 9.3, "android": 4.4, "opera": 39}},
    "columns": {"-webkit-": {"chrome": 49, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 36}, "-moz-": {"firefox": 51}},
    "column-count": {"-webkit-": {"chrome": 49, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 36}, "-moz-": {"firefox": 51}},
    "column-gap": {"-webkit-": {"chrome": 49, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 36}, "-moz-": {"firefox": 51}},
    "flex": {"-webkit-": _FLEXBOX_WEBKIT, "-ms-": {"ie": 10}},
    "flex-direction": {"-webkit-": _FLEXBOX_WEBKIT},
    "flex-wrap": {"-webkit-": _FLEXBOX_WEBKIT},
    "flex-flow": {"-webkit-": _FLEXBOX_WEBKIT},
    "flex-grow": {"-webkit-": _FLEXBOX_WEBKIT},
    "flex-shrink": {"-webkit-": _FLEXBOX_WEBKIT},
    "flex-basis": {"-webkit-": _FLEXBOX_WEBKIT},
    "justify-content": {"-webkit-": _FLEXBOX_WEBKIT},
    "align-items": {"-webkit-": _FLEXBOX_WEBKIT},
    "align-self": {"-webkit-": _FLEXBOX_WEBKIT},
    "align-content": {"-webkit-": _FLEXBOX_WEBKIT},
    "order": {"-webkit-": _FLEXBOX_WEBKIT},
}

# display values with prefixed equivalents
DISPLAY_VALUES: Final[dict[str, tuple[tuple[str, Support], ...]]] = {
    "flex": (("-webkit-flex", _FLEXBOX_WEBKIT), ("-ms-flexbox", {"ie": 10})),
    "inline-flex": (("-webkit-inline-flex", _FLEXBOX_WEBKIT), ("-ms-inline-flexbox", {"ie": 10})),
}

KEYFRAMES_PREFIXES: Final[dict[str, Support]] = {
    "-webkit-": {"chrome": 42, "safari": 8, "ios": 8.4, "android": 4.4, "opera": 29},
}

_NESTED_AT_RULES = frozenset({"media", "supports", "document", "layer", "container"})
_DECLARATION_AT_RULES = frozenset({"font-face", "page", "viewport", "counter-style"})
# IE-only filter syntax; prefixing it would produce an invalid declaration
_LEGACY_FILTER_VALUES = ("alpha(", "progid:")
_VALUE_PROPERTY_RE = re.compile(
    r"(?<![-\w])(" + "|".join(sorted(PROPERTY_PREFIXES, key=len, reverse=True)) + r")(?![-\w])"
)


def parse_browsers(queries: Iterable[str]) -> BrowserMatrix:
    """Parse `Name >= version` queries into a matrix of minimum versions.

    Raises:
        ConfigurationError: If a query is malformed or names an unknown browser.
    """
    matrix: BrowserMatrix = {}
    for query in queries:
        match = _QUERY_RE.match(query)
        if match is None:
            raise ConfigurationError(f"Invalid browser query: {query!r} (expected 'Name >= version')")
        name = BROWSER_ALIASES.get(match.group("name").lower())
        if name is None:
            raise ConfigurationError(
                f"Unknown browser in query {query!r}. Known browsers: {', '.join(sorted(BROWSER_ALIASES))}"
            )
        version = float(match.group("version"))
        if match.group("op") == ">":
            version += 0.001
        matrix[name] = min(version, matrix.get(name, version))
    return matrix


def needs_prefix(support: Support | None, matrix: BrowserMatrix) -> bool:
    """Return True if any browser in the matrix is old enough to need the prefix."""
    if not support:
        return False
    return any(browser in matrix and matrix[browser] <= last for browser, last in support.items())


def _prefix_value(value: str, prefix: str, matrix: BrowserMatrix) -> str:
    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if needs_prefix(PROPERTY_PREFIXES[name].get(prefix), matrix):
            return prefix + name
        return name

    return _VALUE_PROPERTY_RE.sub(_replace, value)


def prefixed_variants(
    name: str,
    value: str,
    matrix: BrowserMatrix,
    *,
    only_prefix: str | None = None,
) -> Iterator[tuple[str, str]]:
    """Yield (property, value) pairs to emit before an unprefixed declaration."""
    if name == "filter" and value.lower().startswith(_LEGACY_FILTER_VALUES):
        return
    for prefix, support in PROPERTY_PREFIXES.get(name, {}).items():
        if only_prefix and prefix != only_prefix:
            continue
        if needs_prefix(support, matrix):
            if name.startswith("transition"):
                yield prefix + name, _prefix_value(value, prefix, matrix)
            else:
                yield prefix + name, value
    if name == "display":
        for prefixed_value, support in DISPLAY_VALUES.get(value.lower(), ()):
            if only_prefix and not prefixed_value.startswith(only_prefix):
                continue
            if needs_prefix(support, matrix):
                yield name, prefixed_value


def _render_declarations(content: list, matrix: BrowserMatrix, only_prefix: str | None = None) -> str:
    declarations = list(split_declarations(content))
    present = {
        (d.lower_name, tinycss2.serialize(d.value).strip())
        for d, _ in declarations
        if d is not None
    }
    present_names = {name for name, _ in present}

    rendered: list[str] = []
    for declaration, raw in declarations:
        if declaration is None:
            logger.debug("Keeping unparseable declaration verbatim: %s", raw)
            rendered.append(raw)
            continue
        name = declaration.lower_name
        value = tinycss2.serialize(declaration.value).strip()
        important = "!important" if declaration.important else ""
        for variant_name, variant_value in prefixed_variants(name, value, matrix, only_prefix=only_prefix):
            if variant_name != name and variant_name in present_names:
                continue
            if (variant_name, variant_value) in present:
                continue
            rendered.append(f"{variant_name}:{variant_value}{important}")
        rendered.append(f"{declaration.name}:{value}{important}")
    return ";".join(rendered)


def _render_keyframes(node, matrix: BrowserMatrix, prefix: str | None) -> str:
    keyword = f"{prefix}keyframes" if prefix else node.at_keyword
    frames = tinycss2.parse_rule_list(node.content, skip_comments=True, skip_whitespace=True)
    body = "".join(
        f"{tinycss2.serialize(frame.prelude).strip()}{{{_render_declarations(frame.content, matrix, prefix)}}}"
        for frame in frames
        if frame.type == "qualified-rule"
    )
    return f"{at_rule_head(keyword, node.prelude)}{{{body}}}"


def _render_rules(rules, matrix: BrowserMatrix) -> str:
    rendered: list[str] = []
    for node, raw in rules:
        if node is None:
            logger.debug("Keeping unparseable stylesheet content verbatim: %s", raw)
            rendered.append(raw)
        else:
            rendered.append(_render_node(node, matrix))
    return "\n".join(filter(None, rendered))


def _render_node(node, matrix: BrowserMatrix) -> str:
    if node.type == "qualified-rule":
        prelude = tinycss2.serialize(node.prelude).strip()
        return f"{prelude}{{{_render_declarations(node.content, matrix)}}}"

    if node.type == "at-rule":
        keyword = node.lower_at_keyword
        if node.content is None:
            return node.serialize()
        if keyword in _NESTED_AT_RULES:
            body = _render_rules(split_rules(node.content), matrix)
            return f"{at_rule_head(node.at_keyword, node.prelude)}{{{body}}}"
        if keyword == "keyframes":
            blocks = [
                _render_keyframes(node, matrix, prefix)
                for prefix, support in KEYFRAMES_PREFIXES.items()
                if needs_prefix(support, matrix)
            ]
            blocks.append(_render_keyframes(node, matrix, None))
            return "\n".join(blocks)
        if keyword in _DECLARATION_AT_RULES:
            return f"{at_rule_head(node.at_keyword, node.prelude)}{{{_render_declarations(node.content, matrix)}}}"
        return node.serialize()

    return node.serialize()


def autoprefix(css: str, browsers: Iterable[str]) -> str:
    """Add vendor-prefixed declarations required by the browser matrix.

    Args:
        css: Plain stylesheet text.
        browsers: Browser queries, e.g. ("Chrome >= 35", "Explorer >= 7").

    Returns:
        Stylesheet text with prefixed declarations placed before their
        unprefixed counterparts.
    """
    matrix = parse_browsers(browsers)
    return _render_rules(parse_stylesheet_rules(css), matrix)
