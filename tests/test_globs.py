"""Tests for glob expansion and matching."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitesmith.utils.globs import (
    expand_braces,
    expand_globs,
    is_within,
    match_any,
    match_glob,
    normalize_pattern,
    static_prefix,
)


@pytest.mark.unit
class TestPatterns:
    def test_normalize_collapses_redundant_segments(self) -> None:
        assert normalize_pattern("src/js//*.js") == "src/js/*.js"
        assert normalize_pattern("./dist/") == "dist/"
        assert normalize_pattern("src\\css\\*.css") == "src/css/*.css"

    def test_expand_braces(self) -> None:
        assert expand_braces("img/*.{png,jpg,gif}") == ["img/*.png", "img/*.jpg", "img/*.gif"]
        assert expand_braces("plain/*.js") == ["plain/*.js"]

    def test_double_star_matches_zero_or_more_directories(self) -> None:
        assert match_glob("src/less/main.less", "src/less/**/*.less")
        assert match_glob("src/less/parts/forms/_a.less", "src/less/**/*.less")
        assert not match_glob("src/less/main.css", "src/less/**/*.less")

    def test_single_star_stays_in_segment(self) -> None:
        assert match_glob("src/js/a.js", "src/js/*.js")
        assert not match_glob("src/js/vendor/x.js", "src/js/*.js")

    def test_braces_in_matching(self) -> None:
        assert match_glob("src/images/a/b.gif", "src/images/**/*.{png,jpg,gif}")
        assert not match_glob("src/images/a/b.svg", "src/images/**/*.{png,jpg,gif}")

    def test_negation(self) -> None:
        patterns = ["dist/*.html", "!dist/b.html"]
        assert match_any("dist/a.html", patterns)
        assert not match_any("dist/b.html", patterns)

    def test_static_prefix(self) -> None:
        assert static_prefix("dist/**/*.html") == "dist"
        assert static_prefix("src/css/*.css") == "src/css"
        assert static_prefix("*.html") == ""


@pytest.mark.unit
class TestExpandGlobs:
    @pytest.fixture
    def tree(self, tmp_path: Path) -> Path:
        for rel in ("src/js/b.js", "src/js/a.js", "src/js/sub/c.js", "src/js/readme.txt"):
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(rel, encoding="utf-8")
        return tmp_path

    def test_sorted_matches(self, tree: Path) -> None:
        found = expand_globs(tree, ["src/js/*.js"])
        assert [p.name for p in found] == ["a.js", "b.js"]

    def test_pattern_order_then_dedup(self, tree: Path) -> None:
        found = expand_globs(tree, ["src/js/b.js", "src/js/*.js"])
        assert [p.name for p in found] == ["b.js", "a.js"]

    def test_negation_removes_matches(self, tree: Path) -> None:
        found = expand_globs(tree, ["src/js/**/*.js", "!src/js/sub/*.js"])
        assert [p.name for p in found] == ["a.js", "b.js"]

    def test_missing_base_yields_nothing(self, tmp_path: Path) -> None:
        assert expand_globs(tmp_path / "nope", ["*.js"]) == []

    def test_directories_only_when_asked(self, tree: Path) -> None:
        assert expand_globs(tree, ["src/js/*"], files_only=True) == [
            tree / "src/js/a.js",
            tree / "src/js/b.js",
            tree / "src/js/readme.txt",
        ]
        assert tree / "src/js/sub" in expand_globs(tree, ["src/js/*"], files_only=False)

    def test_is_within(self, tree: Path) -> None:
        assert is_within(tree / "src/js/a.js", tree / "src")
        assert not is_within(tree / "src/js/a.js", tree / "dist")
