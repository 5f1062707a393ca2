"""Tests for include expansion."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from sitesmith.config import BuildConfig
from sitesmith.errors import ConfigurationError, MissingInputError
from sitesmith.tasks import TaskContext
from sitesmith.tasks.includes import IncludeExpander, IncludesTask


@pytest.fixture
def include_dir(project_root: Path, write) -> Path:
    write("src/site/include/header.html", "<header>Site</header>\n")
    write("src/site/include/footer.html", "<footer>Bye</footer>\n")
    return project_root / "src/site/include"


@pytest.mark.unit
class TestIncludeExpander:
    def test_indentation_is_reapplied(self, include_dir: Path, write) -> None:
        write("src/site/include/nav.html", "<nav>\n  <a>Home</a>\n</nav>\n")
        template = write("src/site/index.html", '<body>\n    include "nav"\n</body>\n')

        out = IncludeExpander([include_dir]).expand(template)

        assert out == "<body>\n    <nav>\n      <a>Home</a>\n    </nav>\n</body>\n"

    def test_duplicates_false_keeps_first_reference(self, include_dir: Path, write) -> None:
        template = write(
            "src/site/index.html",
            'include "header"\ninclude "header"\ninclude "footer"\ninclude "header"\n',
        )

        out = IncludeExpander([include_dir], duplicates=False).expand(template)

        assert out == "<header>Site</header>\n<footer>Bye</footer>\n"

    def test_duplicates_true_repeats(self, include_dir: Path, write) -> None:
        template = write("src/site/index.html", 'include "header"\ninclude "header"\n')

        out = IncludeExpander([include_dir]).expand(template)

        assert out.count("<header>") == 2

    def test_nested_fragments(self, include_dir: Path, write) -> None:
        write("src/site/include/layout.html", 'include "header"\n<main></main>\ninclude "footer"\n')
        template = write("src/site/index.html", 'include "layout"\n')

        out = IncludeExpander([include_dir]).expand(template)

        assert out == "<header>Site</header>\n<main></main>\n<footer>Bye</footer>\n"

    def test_fragment_without_trailing_newline(self, include_dir: Path, write) -> None:
        write("src/site/include/snippet.html", "<p>x</p>")
        template = write("src/site/index.html", 'include "snippet"\nafter\n')

        assert IncludeExpander([include_dir]).expand(template) == "<p>x</p>\nafter\n"

    def test_missing_fragment_names_template(self, include_dir: Path, write) -> None:
        template = write("src/site/index.html", 'include "sidebar"\n')

        with pytest.raises(MissingInputError) as excinfo:
            IncludeExpander([include_dir]).expand(template)

        assert excinfo.value.name == "sidebar"
        assert excinfo.value.referrer == "index.html"

    def test_cycle_is_reported(self, include_dir: Path, write) -> None:
        write("src/site/include/a.html", 'include "b"\n')
        write("src/site/include/b.html", 'include "a"\n')
        template = write("src/site/index.html", 'include "a"\n')

        with pytest.raises(ConfigurationError, match="include cycle detected: index.html -> a.html -> b.html -> a.html"):
            IncludeExpander([include_dir]).expand(template)

    def test_self_include(self, include_dir: Path, write) -> None:
        template = write("src/site/index.html", 'include "index"\n')

        with pytest.raises(ConfigurationError, match="include cycle"):
            IncludeExpander([include_dir]).expand(template)


@pytest.mark.unit
class TestIncludesTask:
    def test_builds_flattened_pages(self, site: Path, config: BuildConfig, context: TaskContext) -> None:
        result = IncludesTask().run(config.tasks["includes:build"], context)

        index = (site / "dist/index.html").read_text(encoding="utf-8")
        about = (site / "dist/about.html").read_text(encoding="utf-8")
        assert result["succeeded"] == 2
        assert "  <header>Site</header>\n" in index
        assert "  <footer>Bye</footer>\n" in index
        assert 'include "' not in index
        assert "<header>Site</header>" in about
        assert not (site / "dist/pages").exists()

    def test_unchanged_outputs_are_not_rewritten(self, site: Path, config: BuildConfig, context: TaskContext) -> None:
        task = config.tasks["includes:build"]
        IncludesTask().run(task, context)
        before = (site / "dist/index.html").stat().st_mtime_ns

        result = IncludesTask().run(task, context)

        assert {item["status"] for item in result["items"]} == {"unchanged"}
        assert (site / "dist/index.html").stat().st_mtime_ns == before

    def test_missing_footer_fails_without_output(self, site: Path, config: BuildConfig, context: TaskContext) -> None:
        (site / "src/site/include/footer.html").unlink()

        with pytest.raises(MissingInputError, match="footer") as excinfo:
            IncludesTask().run(config.tasks["includes:build"], context)

        assert excinfo.value.referrer == "index.html"
        assert not (site / "dist/index.html").exists()

    def test_flatten_collision(self, site: Path, config: BuildConfig, context: TaskContext, write) -> None:
        write("src/site/pages/index.html", "<p>other index</p>\n")

        with pytest.raises(ConfigurationError, match="both flatten to dist/index.html"):
            IncludesTask().run(config.tasks["includes:build"], context)

    def test_without_flatten_keeps_layout(self, site: Path, config: BuildConfig, context: TaskContext) -> None:
        task = config.tasks["includes:build"]
        task = replace(task, options={**task.options, "flatten": False})

        IncludesTask().run(task, context)

        assert (site / "dist/pages/about.html").is_file()
