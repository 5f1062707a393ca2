"""Project configuration: path registry, task table, pipelines and watch bindings.

A project is configured by an optional `sitesmith.yaml` at its root::

    project:
      name: my-site
      version: 1.2.0
    paths:
      source: src
      build: dist
    browsers: ["Chrome >= 60", "Firefox >= 60"]
    ci: false
    tasks:
      concat:build:
        options:
          order: [src/js/vendor.js, src/js/app.js]
      clean:tmp:
        inputs: [dist/tmp/**]
    pipelines:
      release: [build, cleancss, compress]
    watch:
      docs:
        files: [docs/*.md]
        pipeline: includes

Every section is optional; without a file the defaults describe the standard
`src/` -> `dist/` layout, and project metadata is read from `package.json`
when present. `load_config` validates the whole configuration up front so
that a malformed task or pipeline never starts a build.
"""

from __future__ import annotations

import json
import logging
import os
import posixpath
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final

import yaml

from .composer import resolve_steps
from .css.autoprefix import parse_browsers
from .defaults import DEFAULT_PIPELINES, default_tasks, default_watch_bindings
from .definitions import ProjectMetadata, TaskDefinition, WatchBinding
from .errors import ConfigurationError
from .global_config import (
    AP_BROWSERS,
    BUILD_DIR,
    CI_ENV_VAR,
    CONFIG_FILENAME,
    CSS_SUBDIR,
    IMAGE_EXTENSIONS,
    IMAGES_SUBDIR,
    INCLUDE_SUBDIR,
    JS_SUBDIR,
    LESS_ENTRY,
    LESS_SUBDIR,
    PACKAGE_JSON_FILENAME,
    PAGES_SUBDIR,
    SCRIPT_FILE,
    SCRIPT_MIN_FILE,
    SITE_SUBDIR,
    SRC_DIR,
    STYLE_FILE,
    UNCSS_FILE,
    UNCSS_MIN_FILE,
)
from .tasks import TASK_REGISTRY, TaskKind, get_task_kind
from .utils.globs import normalize_pattern, split_negations, static_prefix

logger = logging.getLogger(__name__)

KNOWN_SECTIONS: Final[frozenset[str]] = frozenset(
    {"project", "paths", "browsers", "ci", "tasks", "pipelines", "watch"}
)
_TASK_KEYS: Final[frozenset[str]] = frozenset({"inputs", "outputs", "cwd", "options"})
_WATCH_KEYS: Final[frozenset[str]] = frozenset({"files", "pipeline", "reload"})
_FALSY_ENV: Final[frozenset[str]] = frozenset({"", "0", "false", "no", "off"})


@dataclass(frozen=True)
class PathRegistry:
    """Directories and globs of a site project, relative to its root.

    Every path is a POSIX string derived from the two bases, so it can be
    used directly as a glob pattern or joined onto the project root.

    Attributes:
        root: Absolute project root.
        source: Source base directory.
        build: Destination base directory.
    """

    root: Path
    source: str = SRC_DIR
    build: str = BUILD_DIR

    # Source tree
    @property
    def src_dir(self) -> str:
        return self.source

    @property
    def src_dir_html(self) -> str:
        return f"{self.source}/{SITE_SUBDIR}"

    @property
    def pages_subdir(self) -> str:
        return PAGES_SUBDIR

    @property
    def src_dir_include(self) -> str:
        return f"{self.src_dir_html}/{INCLUDE_SUBDIR}"

    @property
    def src_files_html(self) -> tuple[str, ...]:
        return (
            f"{self.src_dir_html}/*.html",
            f"{self.src_dir_html}/{PAGES_SUBDIR}/*.html",
            f"{self.src_dir_include}/*.html",
        )

    @property
    def src_file_index(self) -> str:
        return f"{self.src_dir_html}/index.html"

    @property
    def src_dir_js(self) -> str:
        return f"{self.source}/{JS_SUBDIR}"

    @property
    def src_files_js(self) -> str:
        return f"{self.src_dir_js}/*.js"

    @property
    def src_dir_css(self) -> str:
        return f"{self.source}/{CSS_SUBDIR}"

    @property
    def src_files_css(self) -> str:
        return f"{self.src_dir_css}/*.css"

    @property
    def src_file_style(self) -> str:
        return f"{self.src_dir_css}/{STYLE_FILE}"

    @property
    def src_dir_less(self) -> str:
        return f"{self.source}/{LESS_SUBDIR}"

    @property
    def src_files_less(self) -> str:
        return f"{self.src_dir_less}/**/*.less"

    @property
    def src_file_less(self) -> str:
        return f"{self.src_dir_less}/{LESS_ENTRY}"

    @property
    def src_dir_images(self) -> str:
        return f"{self.source}/{IMAGES_SUBDIR}"

    @property
    def image_glob(self) -> str:
        return "**/*.{" + ",".join(IMAGE_EXTENSIONS) + "}"

    @property
    def src_files_images(self) -> str:
        return f"{self.src_dir_images}/{self.image_glob}"

    # Build tree
    @property
    def build_dir(self) -> str:
        return self.build

    @property
    def build_files_html(self) -> str:
        return f"{self.build}/**/*.html"

    @property
    def build_dir_css(self) -> str:
        return f"{self.build}/{CSS_SUBDIR}"

    @property
    def build_files_css(self) -> str:
        return f"{self.build_dir_css}/*.css"

    @property
    def build_file_uncss(self) -> str:
        return f"{self.build_dir_css}/{UNCSS_FILE}"

    @property
    def build_file_uncss_min(self) -> str:
        return f"{self.build_dir_css}/{UNCSS_MIN_FILE}"

    @property
    def build_dir_js(self) -> str:
        return f"{self.build}/{JS_SUBDIR}"

    @property
    def build_files_js(self) -> str:
        return f"{self.build_dir_js}/*.js"

    @property
    def build_file_js(self) -> str:
        return f"{self.build_dir_js}/{SCRIPT_FILE}"

    @property
    def build_file_js_min(self) -> str:
        return f"{self.build_dir_js}/{SCRIPT_MIN_FILE}"

    @property
    def build_dir_images(self) -> str:
        return f"{self.build}/{IMAGES_SUBDIR}"

    @property
    def build_root(self) -> Path:
        return self.root / self.build


@dataclass(frozen=True)
class BuildConfig:
    """A fully validated project configuration.

    Attributes:
        root: Absolute project root.
        paths: Path registry bound to the root.
        project: Project metadata (banners, CLI output).
        browsers: Default browser matrix for the style pipeline.
        tasks: Task definitions keyed by `kind:target`, in declaration order.
        pipelines: Pipeline aliases mapped to their steps.
        watch: Watch bindings, in dispatch order.
        staging_dirs: Source-side directories tasks may write to besides the
            build directory.
        config_file: Configuration file the config was read from, if any.
        ci: True when lint violations must fail the build.
    """

    root: Path
    paths: PathRegistry
    project: ProjectMetadata = field(default_factory=ProjectMetadata)
    browsers: tuple[str, ...] = AP_BROWSERS
    tasks: Mapping[str, TaskDefinition] = field(default_factory=dict)
    pipelines: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    watch: tuple[WatchBinding, ...] = ()
    staging_dirs: tuple[str, ...] = ()
    config_file: Path | None = None
    ci: bool = False

    def writable_dirs(self) -> list[Path]:
        """Directories tasks may create, overwrite or delete files in."""
        return [self.root / self.paths.build, *(self.root / d for d in self.staging_dirs)]

    def targets_of(self, kind: str) -> list[TaskDefinition]:
        """Return every task of a kind, in declaration order."""
        return [task for task in self.tasks.values() if task.kind == kind]


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    """Return True if an environment variable is set to a truthy value."""
    value = (environ if environ is not None else os.environ).get(name)
    return value is not None and value.strip().lower() not in _FALSY_ENV


def load_config(
    root: str | Path,
    config_file: str | Path | None = None,
    *,
    registry: Mapping[str, TaskKind] = TASK_REGISTRY,
    environ: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Load and validate a project configuration.

    Args:
        root: Project root directory.
        config_file: Configuration file, absolute or relative to the root.
            Defaults to `sitesmith.yaml` in the root when that file exists.
        registry: Task kinds the configuration may use.
        environ: Environment used for the CI flag (defaults to `os.environ`).

    Returns:
        The validated build configuration.

    Raises:
        ConfigurationError: If the file is unreadable or malformed, or any
            task, pipeline or watch binding is invalid.
    """
    root = Path(root).resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Project directory not found: {root}")

    config_path = _locate_config(root, config_file)
    raw = _read_yaml(config_path) if config_path else {}

    unknown = sorted(set(raw) - KNOWN_SECTIONS)
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration section(s): {', '.join(unknown)}. "
            f"Known sections: {', '.join(sorted(KNOWN_SECTIONS))}"
        )

    paths_section = _mapping(raw.get("paths"), "paths")
    paths = PathRegistry(
        root=root,
        source=_relative_dir(paths_section.get("source", SRC_DIR), "paths.source"),
        build=_relative_dir(paths_section.get("build", BUILD_DIR), "paths.build"),
    )
    staging = paths_section.get("staging")
    staging_dirs = (
        tuple(_relative_dir(d, "paths.staging") for d in _string_list(staging, "paths.staging"))
        if staging is not None
        else (paths.src_dir_css,)
    )

    browsers = tuple(_string_list(raw.get("browsers", list(AP_BROWSERS)), "browsers"))
    parse_browsers(browsers)

    ci_value = raw.get("ci", False)
    if not isinstance(ci_value, bool):
        raise ConfigurationError(f"'ci' must be true or false, got {ci_value!r}")
    ci = ci_value or env_flag(CI_ENV_VAR, environ)

    tasks = _merge_tasks(default_tasks(paths, browsers), _mapping(raw.get("tasks"), "tasks"))
    pipelines = dict(DEFAULT_PIPELINES)
    for name, steps in _mapping(raw.get("pipelines"), "pipelines").items():
        pipelines[str(name)] = tuple(_string_list(steps, f"pipelines.{name}"))

    config_name = config_path.resolve().relative_to(root).as_posix() if _inside(config_path, root) else CONFIG_FILENAME
    watch = _merge_watch(default_watch_bindings(paths, config_name), _mapping(raw.get("watch"), "watch"))

    config = BuildConfig(
        root=root,
        paths=paths,
        project=_project_metadata(root, _mapping(raw.get("project"), "project")),
        browsers=browsers,
        tasks=tasks,
        pipelines=pipelines,
        watch=watch,
        staging_dirs=staging_dirs,
        config_file=config_path,
        ci=ci,
    )
    validate_config(config, registry)
    logger.debug(
        "Loaded configuration from %s: %d tasks, %d pipelines",
        config_path or "defaults",
        len(tasks),
        len(pipelines),
    )
    return config


def validate_config(config: BuildConfig, registry: Mapping[str, TaskKind] = TASK_REGISTRY) -> None:
    """Check every task, pipeline and watch binding of a configuration.

    Raises:
        ConfigurationError: On the first invalid entry.
    """
    writable = [config.paths.build, *config.staging_dirs]
    for task in config.tasks.values():
        kind = get_task_kind(task.kind, registry)
        _validate_task(task, kind, writable)

    for name in config.pipelines:
        resolve_steps(config.tasks, config.pipelines, name)

    for binding in config.watch:
        if not binding.globs:
            raise ConfigurationError(f"watch binding {binding.name!r} watches no files")
        if binding.reload:
            continue
        if not binding.pipeline:
            raise ConfigurationError(f"watch binding {binding.name!r} needs a pipeline or reload: true")
        try:
            resolve_steps(config.tasks, config.pipelines, binding.pipeline)
        except ConfigurationError as exc:
            raise ConfigurationError(f"watch binding {binding.name!r}: {exc}") from exc


def _validate_task(task: TaskDefinition, kind: TaskKind, writable: Sequence[str]) -> None:
    missing = [key for key in kind.required_options if key not in task.options]
    if missing:
        raise ConfigurationError(f"{task.name}: missing required option(s): {', '.join(missing)}")
    if kind.needs_inputs and not task.inputs:
        raise ConfigurationError(f"{task.name}: no inputs configured")
    if kind.needs_outputs and len(task.outputs) != kind.needs_outputs:
        raise ConfigurationError(
            f"{task.name}: expects {kind.needs_outputs} output path(s), got {len(task.outputs)}"
        )

    if task.cwd is not None:
        _check_relative(task.cwd, f"{task.name} cwd")
    positives, negatives = split_negations(task.inputs)
    for pattern in [*positives, *negatives]:
        joined = posixpath.join(task.cwd, pattern) if task.cwd else pattern
        _check_relative(joined, f"{task.name} input {pattern!r}")
        if kind.writes_inputs and pattern in positives and not _under_any(static_prefix(joined), writable):
            raise ConfigurationError(
                f"{task.name}: input {joined!r} is outside the writable directories ({', '.join(writable)})"
            )

    for output in task.outputs:
        _check_relative(output, f"{task.name} output {output!r}")
        if not _under_any(static_prefix(output), writable):
            raise ConfigurationError(
                f"{task.name}: output {output!r} is outside the writable directories ({', '.join(writable)})"
            )

    if kind.validate is not None:
        kind.validate(task)


def _merge_tasks(
    defaults: dict[str, TaskDefinition],
    overrides: Mapping[str, Any],
) -> dict[str, TaskDefinition]:
    tasks = dict(defaults)
    for name, entry in overrides.items():
        name = str(name)
        kind, sep, target = name.partition(":")
        if not sep or not kind or not target:
            raise ConfigurationError(f"Task names must have the form kind:target, got {name!r}")
        entry = _mapping(entry, f"tasks.{name}")
        unknown = sorted(set(entry) - _TASK_KEYS)
        if unknown:
            raise ConfigurationError(f"tasks.{name}: unknown key(s): {', '.join(unknown)}")

        base = tasks.get(name, TaskDefinition(kind, target))
        changes: dict[str, Any] = {}
        if "inputs" in entry:
            changes["inputs"] = tuple(_string_list(entry["inputs"], f"tasks.{name}.inputs"))
        if "outputs" in entry:
            changes["outputs"] = tuple(_string_list(entry["outputs"], f"tasks.{name}.outputs"))
        if "cwd" in entry:
            cwd = entry["cwd"]
            if cwd is not None and not isinstance(cwd, str):
                raise ConfigurationError(f"tasks.{name}.cwd must be a string")
            changes["cwd"] = normalize_pattern(cwd).rstrip("/") if cwd else None
        if "options" in entry:
            changes["options"] = deep_merge(base.options, _mapping(entry["options"], f"tasks.{name}.options"))
        tasks[name] = replace(base, **changes)
    return tasks


def _merge_watch(defaults: tuple[WatchBinding, ...], overrides: Mapping[str, Any]) -> tuple[WatchBinding, ...]:
    bindings = {binding.name: binding for binding in defaults}
    for name, entry in overrides.items():
        name = str(name)
        entry = _mapping(entry, f"watch.{name}")
        unknown = sorted(set(entry) - _WATCH_KEYS)
        if unknown:
            raise ConfigurationError(f"watch.{name}: unknown key(s): {', '.join(unknown)}")
        base = bindings.get(name, WatchBinding(name, ()))
        changes: dict[str, Any] = {}
        if "files" in entry:
            changes["globs"] = tuple(_string_list(entry["files"], f"watch.{name}.files"))
        if "pipeline" in entry:
            pipeline = entry["pipeline"]
            if pipeline is not None and not isinstance(pipeline, str):
                raise ConfigurationError(f"watch.{name}.pipeline must be a task or pipeline name")
            changes["pipeline"] = pipeline
        if "reload" in entry:
            reload = entry["reload"]
            if not isinstance(reload, bool):
                raise ConfigurationError(f"watch.{name}.reload must be true or false, got {reload!r}")
            changes["reload"] = reload
        bindings[name] = replace(base, **changes)
    return tuple(bindings.values())


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge `override` into a copy of `base`; nested mappings are merged key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _project_metadata(root: Path, section: Mapping[str, Any]) -> ProjectMetadata:
    data: dict[str, Any] = {}
    package_json = root / PACKAGE_JSON_FILENAME
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid {PACKAGE_JSON_FILENAME}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{PACKAGE_JSON_FILENAME} must contain a JSON object")
    merged = {**data, **section}
    defaults = ProjectMetadata()
    return ProjectMetadata(
        name=str(merged.get("name") or defaults.name),
        version=str(merged.get("version") or defaults.version),
        description=str(merged.get("description") or defaults.description),
    )


def _locate_config(root: Path, config_file: str | Path | None) -> Path | None:
    if config_file is None:
        default = root / CONFIG_FILENAME
        return default if default.is_file() else None
    path = Path(config_file)
    if not path.is_absolute():
        path = root / path
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    return path


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"'{where}' must be a mapping, got {type(value).__name__}")
    return value


def _string_list(value: Any, where: str) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, Sequence) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"'{where}' must be a string or a list of strings")
    return list(value)


def _check_relative(pattern: str, where: str) -> None:
    raw = pattern.lstrip("!").replace("\\", "/")
    if raw.startswith("/") or (len(raw) > 1 and raw[1] == ":"):
        raise ConfigurationError(f"{where}: paths must be relative to the project root")
    normalized = normalize_pattern(raw)
    if normalized == ".." or normalized.startswith("../"):
        raise ConfigurationError(f"{where}: path escapes the project root")


def _relative_dir(value: Any, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"'{where}' must be a non-empty relative path")
    _check_relative(value, where)
    normalized = normalize_pattern(value).rstrip("/")
    if not normalized:
        raise ConfigurationError(f"'{where}' must name a directory below the project root")
    return normalized


def _under_any(path: str, directories: Sequence[str]) -> bool:
    path = normalize_pattern(path).rstrip("/")
    return any(path == d or path.startswith(d + "/") for d in directories)


def _inside(path: Path | None, root: Path) -> bool:
    if path is None:
        return False
    try:
        path.resolve().relative_to(root)
    except ValueError:
        return False
    return True
