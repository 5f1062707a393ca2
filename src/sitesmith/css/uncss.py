"""Unused-selector removal.

Selectors are matched against parsed documents with BeautifulSoup's CSS
selector engine (soupsieve). The reduction is conservative: a selector is
only dropped when it provably matches nothing in every sampled document.
Pseudo-classes and pseudo-elements are stripped before matching (which can
only widen a selector), and selectors the engine cannot evaluate are kept.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import tinycss2
from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from .serialize import at_rule_head, parse_stylesheet_rules, split_rules

logger = logging.getLogger(__name__)

_NESTED_AT_RULES = frozenset({"media", "supports", "document", "layer", "container"})
_COMBINATOR_CHARS = frozenset(" \t\n>+~(,")


def split_selectors(selector_list: str) -> list[str]:
    """Split a selector list on top-level commas (not inside (), [] or quotes)."""
    selectors: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    i = 0
    while i < len(selector_list):
        ch = selector_list[i]
        if ch == "\\" and i + 1 < len(selector_list):
            current.append(selector_list[i : i + 2])
            i += 2
            continue
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            selectors.append("".join(current).strip())
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1
    tail = "".join(current).strip()
    if tail:
        selectors.append(tail)
    return [s for s in selectors if s]


def strip_pseudo(selector: str) -> str:
    """Remove pseudo-classes and pseudo-elements outside brackets and strings.

    A compound that consisted only of a pseudo (`a > :hover`) becomes `*`.
    """
    out: list[str] = []
    depth = 0
    quote: str | None = None
    i = 0
    n = len(selector)
    while i < n:
        ch = selector[i]
        if ch == "\\" and i + 1 < n:
            out.append(selector[i : i + 2])
            i += 2
            continue
        if quote:
            if ch == quote:
                quote = None
            out.append(ch)
            i += 1
            continue
        if ch in "\"'":
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(depth - 1, 0)
        elif ch == ":" and depth == 0:
            j = i + 1
            if j < n and selector[j] == ":":
                j += 1
            while j < n and (selector[j].isalnum() or selector[j] in "-_"):
                j += 1
            if j < n and selector[j] == "(":
                level = 0
                while j < n:
                    if selector[j] == "(":
                        level += 1
                    elif selector[j] == ")":
                        level -= 1
                        if level == 0:
                            j += 1
                            break
                    j += 1
            if not out or out[-1][-1] in _COMBINATOR_CHARS:
                out.append("*")
            i = j
            continue
        out.append(ch)
        i += 1
    return "".join(out).strip()


def selector_used(selector: str, documents: Sequence[BeautifulSoup]) -> bool:
    """Return True unless the selector provably matches nothing in any document."""
    stripped = strip_pseudo(selector)
    if not stripped or stripped == "*":
        return True
    for document in documents:
        try:
            if document.select_one(stripped) is not None:
                return True
        except (SelectorSyntaxError, NotImplementedError, ValueError):
            logger.debug("Keeping selector the matcher cannot evaluate: %s", selector)
            return True
    return False


def _reduce_node(node, documents: Sequence[BeautifulSoup], removed: list[str]) -> str:
    if node.type == "qualified-rule":
        kept: list[str] = []
        for selector in split_selectors(tinycss2.serialize(node.prelude)):
            if selector_used(selector, documents):
                kept.append(selector)
            else:
                removed.append(selector)
        if not kept:
            return ""
        return f"{','.join(kept)}{{{tinycss2.serialize(node.content).strip()}}}"

    if node.type == "at-rule" and node.content is not None and node.lower_at_keyword in _NESTED_AT_RULES:
        body = _reduce_rules(split_rules(node.content), documents, removed)
        if not body:
            return ""
        return f"{at_rule_head(node.at_keyword, node.prelude)}{{{body}}}"

    return node.serialize()


def _reduce_rules(rules, documents: Sequence[BeautifulSoup], removed: list[str]) -> str:
    rendered: list[str] = []
    for node, raw in rules:
        if node is None:
            logger.warning("Keeping unparseable stylesheet content as-is: %s", raw)
            rendered.append(raw)
        else:
            rendered.append(_reduce_node(node, documents, removed))
    return "\n".join(part for part in rendered if part)


def reduce_stylesheet(css: str, documents: Sequence[BeautifulSoup]) -> tuple[str, list[str]]:
    """Remove rules whose selectors match nothing in the documents.

    Args:
        css: Stylesheet text.
        documents: Parsed documents; a selector is kept if it matches in any.

    Returns:
        Tuple of (reduced stylesheet text, list of removed selectors).
    """
    removed: list[str] = []
    return _reduce_rules(parse_stylesheet_rules(css), documents, removed), removed


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")
