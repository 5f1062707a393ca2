"""Tests for pipeline resolution and execution."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from sitesmith.composer import Composer, resolve_steps
from sitesmith.config import BuildConfig, load_config
from sitesmith.definitions import TaskDefinition
from sitesmith.errors import BuildError, ConfigurationError, MissingInputError, PipelineError
from sitesmith.tasks import TASK_REGISTRY, TaskContext, step_result


class RecordingRunner:
    def __init__(self, calls: list[str], result: dict[str, Any] | None = None) -> None:
        self.calls = calls
        self.result = result

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        self.calls.append(task.name)
        return self.result if self.result is not None else step_result(message=f"ran {task.name}")


class FailingRunner:
    def __init__(self, calls: list[str], exc: Exception) -> None:
        self.calls = calls
        self.exc = exc

    def run(self, task: TaskDefinition, context: TaskContext) -> dict[str, Any]:
        self.calls.append(task.name)
        raise self.exc


def recording_registry(calls: list[str], **overrides: Any) -> dict:
    registry = {kind: replace(entry, runner=RecordingRunner(calls)) for kind, entry in TASK_REGISTRY.items()}
    for kind, runner in overrides.items():
        registry[kind] = replace(registry[kind], runner=runner)
    return registry


@pytest.mark.unit
class TestResolve:
    def test_default_pipeline_order(self, config: BuildConfig) -> None:
        steps = Composer(config).resolve("default")

        assert [task.name for task in steps] == [
            "includes:build",
            "clean:stylesall",
            "cssflow:build",
            "copy:styles",
        ]

    def test_bare_kind_expands_to_all_targets(self, config: BuildConfig) -> None:
        steps = Composer(config).resolve("jshint")
        assert [task.name for task in steps] == ["jshint:beforeconcat", "jshint:afterconcat"]

    def test_nested_aliases(self) -> None:
        tasks = {"a:x": TaskDefinition("a", "x"), "b:y": TaskDefinition("b", "y")}
        pipelines = {"outer": ("inner", "b:y"), "inner": ("a:x",)}

        assert [t.name for t in resolve_steps(tasks, pipelines, "outer")] == ["a:x", "b:y"]

    def test_pipeline_name_wins_over_kind(self) -> None:
        tasks = {"styles:x": TaskDefinition("styles", "x"), "a:x": TaskDefinition("a", "x")}
        assert [t.name for t in resolve_steps(tasks, {"styles": ("a:x",)}, "styles")] == ["a:x"]

    def test_cycle(self) -> None:
        with pytest.raises(ConfigurationError, match="pipeline cycle detected: a -> b -> a"):
            resolve_steps({}, {"a": ("b",), "b": ("a",)}, "a")

    def test_unknown_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown task or pipeline: 'nope' \\(in pipeline 'p'\\)"):
            resolve_steps({}, {"p": ("nope",)}, "p")


@pytest.mark.unit
class TestRun:
    def test_steps_run_in_order(self, config: BuildConfig) -> None:
        calls: list[str] = []

        result = Composer(config, recording_registry(calls)).run("scripts")

        assert calls == ["jshint:beforeconcat", "clean:js", "concat:build", "uglify:build", "jshint:afterconcat"]
        assert result["success"] is True
        assert [item["item"] for item in result["items"]] == calls
        assert set(result["steps"]) == set(calls)

    def test_failure_aborts_remaining_steps(self, config: BuildConfig) -> None:
        calls: list[str] = []
        cause = MissingInputError("footer", referrer="index.html")
        registry = recording_registry(calls, includes=FailingRunner(calls, cause))

        with pytest.raises(PipelineError) as excinfo:
            Composer(config, registry).run("default")

        assert calls == ["includes:build"]
        assert excinfo.value.step == "includes:build"
        assert excinfo.value.cause is cause
        assert str(excinfo.value).startswith("pipeline 'default' failed at step 'includes:build':")

    def test_reported_failure_aborts(self, config: BuildConfig) -> None:
        calls: list[str] = []
        failed = RecordingRunner(calls, step_result(success=False, message="compile failed"))
        registry = recording_registry(calls, cssflow=failed)

        with pytest.raises(PipelineError) as excinfo:
            Composer(config, registry).run("default")

        assert calls == ["includes:build", "clean:stylesall", "cssflow:build"]
        assert isinstance(excinfo.value.cause, BuildError)
        assert "compile failed" in str(excinfo.value)

    def test_warnings_are_counted(self, config: BuildConfig) -> None:
        calls: list[str] = []
        advisory = RecordingRunner(calls, step_result(failures=[{"item": "a.js:1", "reason": "[curly] x"}]))
        registry = recording_registry(calls, jshint=advisory)

        result = Composer(config, registry).run("jshint")

        assert result["warnings"] == 2
        assert result["message"] == "2 warning(s)"

    def test_unknown_pipeline(self, config: BuildConfig) -> None:
        with pytest.raises(ConfigurationError):
            Composer(config).run("deploy")


@pytest.mark.integration
class TestPipelines:
    def test_build_is_idempotent(self, site: Path, config: BuildConfig) -> None:
        composer = Composer(config)
        composer.run("build")
        index = site / "dist/index.html"
        first = index.read_text(encoding="utf-8")
        mtime = index.stat().st_mtime_ns

        composer.run("build")

        assert index.read_text(encoding="utf-8") == first
        assert index.stat().st_mtime_ns == mtime
        assert (site / "dist/about.html").is_file()

    def test_scripts_output_is_reproducible(self, site: Path, config: BuildConfig, fixed_clock) -> None:
        composer = Composer(config, clock=fixed_clock)
        composer.run("scripts")
        first = (site / "dist/js/script.min.js").read_text(encoding="utf-8")

        result = composer.run("scripts")

        assert (site / "dist/js/script.min.js").read_text(encoding="utf-8") == first
        assert first.startswith("/*! 05-03-2024 14:07 */\n")
        assert (site / "dist/js/script.js").read_text(encoding="utf-8") == "var a = 1;\n\nvar b = a + 1;\n"
        assert result["warnings"] == 0

    def test_composers_are_independent(self, site: Path, tmp_path: Path, fixed_clock) -> None:
        other = tmp_path / "other"
        (other / "src/js").mkdir(parents=True)
        (other / "src/js/only.js").write_text("var only = true;\n", encoding="utf-8")

        Composer(load_config(site), clock=fixed_clock).run("scripts")
        Composer(load_config(other), clock=fixed_clock).run("scripts")

        assert "only" not in (site / "dist/js/script.js").read_text(encoding="utf-8")
        assert (other / "dist/js/script.js").read_text(encoding="utf-8") == "var only = true;\n"
