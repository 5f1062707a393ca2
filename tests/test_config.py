"""Tests for configuration loading and validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitesmith.config import deep_merge, env_flag, load_config
from sitesmith.defaults import PIPELINE_NAMES
from sitesmith.errors import ConfigurationError


def _write_config(root: Path, text: str) -> None:
    (root / "sitesmith.yaml").write_text(text, encoding="utf-8")


@pytest.mark.unit
class TestDefaults:
    def test_path_registry(self, project_root: Path) -> None:
        config = load_config(project_root)
        paths = config.paths
        assert paths.src_dir_html == "src/site"
        assert paths.src_dir_include == "src/site/include"
        assert paths.src_files_less == "src/less/**/*.less"
        assert paths.build_file_js == "dist/js/script.js"
        assert paths.build_file_js_min == "dist/js/script.min.js"
        assert paths.src_files_images == "src/images/**/*.{png,jpg,gif}"

    def test_default_tasks_and_pipelines(self, project_root: Path) -> None:
        config = load_config(project_root)
        for name in (
            "clean:htmlbuild",
            "clean:stylessrc",
            "clean:stylesbuild",
            "clean:stylesall",
            "clean:js",
            "includes:build",
            "processhtml:build",
            "cssflow:build",
            "copy:styles",
            "uncss:build",
            "cssmin:dist",
            "jshint:beforeconcat",
            "jshint:afterconcat",
            "concat:build",
            "uglify:build",
            "imagemin:dynamic",
            "watch:session",
        ):
            assert name in config.tasks
        for name in PIPELINE_NAMES:
            assert name in config.pipelines
        assert config.pipelines["compress"] == ("imagemin",)
        assert config.tasks["imagemin:dynamic"].option("newer") is True
        assert config.tasks["includes:build"].option("duplicates") is False

    def test_default_watch_bindings(self, project_root: Path) -> None:
        config = load_config(project_root)
        assert [b.name for b in config.watch] == ["config_files", "html", "styles", "scripts", "images"]
        assert config.watch[0].reload is True
        assert config.watch[0].globs == ("sitesmith.yaml",)

    def test_staging_and_build_are_writable(self, project_root: Path) -> None:
        config = load_config(project_root)
        assert config.writable_dirs() == [config.root / "dist", config.root / "src/css"]


@pytest.mark.unit
class TestOverrides:
    def test_moved_base_directories(self, project_root: Path) -> None:
        _write_config(project_root, "paths:\n  source: app\n  build: public\n")
        config = load_config(project_root)
        assert config.tasks["concat:build"].outputs == ("public/js/script.js",)
        assert config.tasks["includes:build"].cwd == "app/site"
        assert config.staging_dirs == ("app/css",)

    def test_task_options_are_deep_merged(self, project_root: Path) -> None:
        _write_config(
            project_root,
            "tasks:\n  concat:build:\n    options:\n      order: [src/js/b.js]\n"
            "  jshint:beforeconcat:\n    options:\n      globals: {$: true}\n",
        )
        config = load_config(project_root)
        concat = config.tasks["concat:build"]
        assert concat.option("order") == ["src/js/b.js"]
        assert concat.option("separator") == "\n"
        assert config.tasks["jshint:beforeconcat"].option("globals") == {"jQuery": True, "$": True}

    def test_new_task_and_pipeline(self, project_root: Path) -> None:
        _write_config(
            project_root,
            "tasks:\n  clean:tmp:\n    inputs: [dist/tmp/**]\n"
            "pipelines:\n  release: [build, clean:tmp, compress]\n",
        )
        config = load_config(project_root)
        assert config.tasks["clean:tmp"].inputs == ("dist/tmp/**",)
        assert config.pipelines["release"] == ("build", "clean:tmp", "compress")

    def test_package_json_metadata(self, project_root: Path) -> None:
        (project_root / "package.json").write_text(json.dumps({"name": "demo", "version": "1.2.3"}))
        config = load_config(project_root)
        assert config.project.name == "demo"
        assert config.project.version == "1.2.3"

    def test_project_section_wins_over_package_json(self, project_root: Path) -> None:
        (project_root / "package.json").write_text(json.dumps({"name": "demo", "version": "1.2.3"}))
        _write_config(project_root, "project:\n  version: 2.0.0\n")
        config = load_config(project_root)
        assert (config.project.name, config.project.version) == ("demo", "2.0.0")

    def test_explicit_config_file(self, project_root: Path) -> None:
        (project_root / "alt.yaml").write_text("browsers: ['Chrome >= 90']\n", encoding="utf-8")
        config = load_config(project_root, "alt.yaml")
        assert config.browsers == ("Chrome >= 90",)
        assert config.watch[0].globs == ("alt.yaml",)


@pytest.mark.unit
class TestCiFlag:
    def test_env_flag_values(self) -> None:
        assert env_flag("CI", {"CI": "true"})
        assert env_flag("CI", {"CI": "1"})
        assert not env_flag("CI", {"CI": "false"})
        assert not env_flag("CI", {"CI": "0"})
        assert not env_flag("CI", {})

    def test_ci_from_environment(self, project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        assert load_config(project_root).ci is False
        monkeypatch.setenv("CI", "true")
        assert load_config(project_root).ci is True

    def test_ci_from_config(self, project_root: Path) -> None:
        _write_config(project_root, "ci: true\n")
        assert load_config(project_root).ci is True


@pytest.mark.unit
class TestValidation:
    @pytest.mark.parametrize(
        ("text", "match"),
        [
            ("bogus: 1\n", "Unknown configuration section"),
            ("tasks: [1, 2]\n", "must be a mapping"),
            ("browsers: ['Netscape >= 4']\n", "Unknown browser"),
            ("ci: maybe\n", "'ci' must be true or false"),
            ("tasks:\n  concat:build:\n    outputs: [src/js/out.js]\n", "outside the writable"),
            ("tasks:\n  concat:build:\n    inputs: ['../secret/*.js']\n", "escapes the project root"),
            ("tasks:\n  concat:build:\n    inputs: ['/etc/*.js']\n", "relative to the project root"),
            ("tasks:\n  clean:sources:\n    inputs: ['src/js/*.js']\n", "outside the writable"),
            ("tasks:\n  sass:build:\n    inputs: [a.scss]\n", "Unknown task kind"),
            ("tasks:\n  concat:\n    inputs: [a.js]\n", "kind:target"),
            ("tasks:\n  concat:build:\n    dest: [x]\n", "unknown key"),
            ("tasks:\n  concat:extra:\n    inputs: [src/js/*.js]\n", "expects 1 output"),
            ("tasks:\n  processhtml:build:\n    options:\n      rewrite: {'/a/': '/a/b/'}\n", "rewritten again"),
            ("tasks:\n  cssflow:build:\n    options:\n      keep_special_comments: -1\n", "keep_special_comments"),
            ("tasks:\n  imagemin:dynamic:\n    options:\n      quality: 0\n", "quality"),
            ("pipelines:\n  a: [b]\n  b: [a]\n", "cycle"),
            ("pipelines:\n  release: [nope]\n", "Unknown task or pipeline"),
            ("watch:\n  docs:\n    files: ['docs/*.md']\n    pipeline: nope\n", "watch binding 'docs'"),
            ("watch:\n  docs:\n    files: ['docs/*.md']\n", "needs a pipeline"),
            ("watch:\n  docs:\n    files: ['docs/*.md']\n    reload: 'false'\n", "reload must be true or false"),
        ],
    )
    def test_rejected(self, project_root: Path, text: str, match: str) -> None:
        _write_config(project_root, text)
        with pytest.raises(ConfigurationError, match=match):
            load_config(project_root)

    def test_malformed_yaml(self, project_root: Path) -> None:
        _write_config(project_root, "tasks: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(project_root)

    def test_missing_explicit_config(self, project_root: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(project_root, "missing.yaml")

    def test_empty_file_is_defaults(self, project_root: Path) -> None:
        _write_config(project_root, "")
        assert "concat:build" in load_config(project_root).tasks


@pytest.mark.unit
def test_deep_merge() -> None:
    merged = deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
