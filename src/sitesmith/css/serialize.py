"""Shared parsing and serialization helpers for tinycss2 nodes.

tinycss2 reports unparseable rules and declarations as error nodes that no
longer carry their source text. The splitters below cut the token stream at
rule and declaration boundaries first, so a segment that fails to parse can
still be written back verbatim (IE hacks such as `*zoom: 1` rely on that).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

import tinycss2


def at_rule_head(keyword: str, prelude) -> str:
    """Render ``@keyword prelude`` with the prelude's outer whitespace trimmed."""
    text = tinycss2.serialize(prelude).strip()
    return f"@{keyword} {text}" if text else f"@{keyword}"


def _is_semicolon(token: Any) -> bool:
    return token.type == "literal" and token.value == ";"


def _finish_rule(segment: list) -> tuple[Any, str]:
    rule = tinycss2.parse_one_rule(segment)
    if rule.type == "error":
        return None, tinycss2.serialize(segment).strip()
    return rule, ""


def split_rules(values: Iterable[Any]) -> Iterator[tuple[Any, str]]:
    """Split component values into rules.

    Yields:
        (node, raw) pairs. `node` is a parsed rule or a comment; it is None
        when the segment does not parse, and `raw` then holds its source text.
    """
    segment: list = []
    for token in values:
        if not segment:
            if token.type == "whitespace":
                continue
            if token.type == "comment":
                yield token, ""
                continue
        segment.append(token)
        if token.type == "{} block" or (_is_semicolon(token) and segment[0].type == "at-keyword"):
            yield _finish_rule(segment)
            segment = []
    if any(token.type not in ("whitespace", "comment") for token in segment):
        yield _finish_rule(segment)


def parse_stylesheet_rules(css: str) -> Iterator[tuple[Any, str]]:
    """Split stylesheet text into rules; see `split_rules`."""
    return split_rules(tinycss2.parse_component_value_list(css, skip_comments=False))


def split_declarations(content: Iterable[Any]) -> Iterator[tuple[Any, str]]:
    """Split a block's content on top-level semicolons into declarations.

    Yields:
        (declaration, raw) pairs; `declaration` is None for a segment that
        does not parse as a declaration, with its source text in `raw`.
    """
    segment: list = []
    for token in [*content, None]:
        if token is not None and not _is_semicolon(token):
            if token.type != "comment":
                segment.append(token)
            continue
        if any(t.type != "whitespace" for t in segment):
            declaration = tinycss2.parse_one_declaration(segment)
            if declaration.type == "error":
                yield None, tinycss2.serialize(segment).strip()
            else:
                yield declaration, ""
        segment = []
