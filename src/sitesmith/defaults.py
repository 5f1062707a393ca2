"""Default task table, pipelines and watch bindings for a site project.

Every default is derived from a `PathRegistry`, so moving the source or build
base directory in the configuration file moves every task with it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Final

from .definitions import TaskDefinition, WatchBinding
from .global_config import (
    BANNER_TEMPLATE,
    CONFIG_FILENAME,
    JPEG_QUALITY,
    UNCSS_IGNORE_SHEETS,
)

if TYPE_CHECKING:
    from .config import PathRegistry

# Pipelines callable from the command line
PIPELINE_NAMES: Final[tuple[str, ...]] = ("default", "dev", "build", "test", "compress", "cleancss")

DEFAULT_PIPELINES: Final[dict[str, tuple[str, ...]]] = {
    "default": ("includes", "clean:stylesall", "cssflow", "copy:styles"),
    "dev": ("includes", "clean:stylessrc", "cssflow", "copy:styles", "watch"),
    "build": ("includes", "processhtml"),
    "test": ("includes", "clean:stylesall", "cssflow", "copy:styles"),
    "compress": ("imagemin",),
    "cleancss": ("uncss", "cssmin:dist"),
    # Dispatched by the watch bindings
    "styles": ("cssflow", "clean:stylesbuild", "copy:styles"),
    "scripts": ("jshint:beforeconcat", "clean:js", "concat", "uglify", "jshint:afterconcat"),
}

_JSHINT_OPTIONS: Final[dict[str, object]] = {
    "curly": True,
    "globals": {"jQuery": True},
}


def default_tasks(paths: PathRegistry, browsers: Sequence[str]) -> dict[str, TaskDefinition]:
    """Build the default task table for a path registry.

    Args:
        paths: Path registry of the project.
        browsers: Browser matrix for the style pipeline.

    Returns:
        Mapping of `kind:target` to task definitions, in declaration order.
    """
    tasks = [
        TaskDefinition("clean", "htmlbuild", inputs=(paths.build_files_html,)),
        TaskDefinition("clean", "stylessrc", inputs=(paths.src_files_css,)),
        TaskDefinition("clean", "stylesbuild", inputs=(paths.build_files_css,)),
        TaskDefinition("clean", "stylesall", inputs=(paths.src_files_css, paths.build_files_css)),
        TaskDefinition("clean", "js", inputs=(paths.build_files_js,)),
        TaskDefinition(
            "includes",
            "build",
            inputs=("*.html", f"{paths.pages_subdir}/*.html"),
            outputs=(paths.build_dir,),
            cwd=paths.src_dir_html,
            options={
                "flatten": True,
                "duplicates": False,
                "include_path": paths.src_dir_include,
            },
        ),
        TaskDefinition("processhtml", "build", inputs=("**/*.html",), cwd=paths.build_dir),
        TaskDefinition(
            "cssflow",
            "build",
            inputs=(paths.src_file_less,),
            outputs=(paths.src_file_style,),
            options={"browsers": list(browsers), "keep_special_comments": 0},
        ),
        TaskDefinition(
            "copy",
            "styles",
            inputs=("*.css",),
            outputs=(paths.build_dir_css,),
            cwd=paths.src_dir_css,
        ),
        TaskDefinition(
            "uncss",
            "build",
            inputs=(paths.src_file_index,),
            outputs=(paths.build_file_uncss,),
            options={"ignore_sheets": list(UNCSS_IGNORE_SHEETS)},
        ),
        TaskDefinition(
            "cssmin",
            "dist",
            inputs=(paths.build_file_uncss,),
            outputs=(paths.build_file_uncss_min,),
            options={"keep_special_comments": 0},
        ),
        TaskDefinition("jshint", "beforeconcat", inputs=(paths.src_files_js,), options=dict(_JSHINT_OPTIONS)),
        TaskDefinition("jshint", "afterconcat", inputs=(paths.build_file_js,), options=dict(_JSHINT_OPTIONS)),
        TaskDefinition(
            "concat",
            "build",
            inputs=(paths.src_files_js,),
            outputs=(paths.build_file_js,),
            options={"separator": "\n"},
        ),
        TaskDefinition(
            "uglify",
            "build",
            inputs=(paths.build_file_js,),
            outputs=(paths.build_file_js_min,),
            options={"banner": BANNER_TEMPLATE},
        ),
        TaskDefinition(
            "imagemin",
            "dynamic",
            inputs=(paths.image_glob,),
            outputs=(paths.build_dir_images,),
            cwd=paths.src_dir_images,
            options={
                "optimization_level": 1,
                "progressive": False,
                "quality": JPEG_QUALITY,
                "newer": True,
            },
        ),
        TaskDefinition("watch", "session"),
    ]
    return {task.name: task for task in tasks}


def default_watch_bindings(paths: PathRegistry, config_filename: str = CONFIG_FILENAME) -> tuple[WatchBinding, ...]:
    """Return the default watch bindings, in dispatch order."""
    return (
        WatchBinding("config_files", (config_filename,), reload=True),
        WatchBinding("html", paths.src_files_html, pipeline="includes"),
        WatchBinding("styles", (paths.src_files_less,), pipeline="styles"),
        WatchBinding("scripts", (paths.src_files_js,), pipeline="scripts"),
        WatchBinding("images", (paths.src_files_images,), pipeline="compress"),
    )
