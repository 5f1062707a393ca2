from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer

from ..composer import Composer
from ..config import load_config
from ..watch import run_watch
from .base import BaseCLI, configure_logging, handle_errors
from .commands.tree import tree_command

configure_logging()
app = typer.Typer(
    help="Build a static site: templates, styles, scripts and images.",
    context_settings={"help_option_names": ["-h", "--help"]},
    no_args_is_help=True,
)

ProjectDirOption = Annotated[
    Path,
    typer.Option(
        "-C",
        "--project-dir",
        help="Project root (defaults to the current directory)",
        file_okay=False,
    ),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "-c",
        "--config",
        help="Configuration file (defaults to sitesmith.yaml in the project root)",
        dir_okay=False,
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("-v", "--verbose", help="Log debug output"),
]


def _set_verbosity(verbose: bool) -> None:
    configure_logging(logging.DEBUG if verbose else logging.INFO)


def run_pipeline(name: str, project_dir: Path, config: Path | None, verbose: bool) -> dict:
    """Load the project configuration and run one pipeline through the CLI."""
    _set_verbosity(verbose)
    cli = BaseCLI("pipeline")

    def _run() -> dict:
        build_config = load_config(project_dir, config)
        return Composer(build_config).run(name)

    return cli.handle_cli_operation(
        operation=name,
        op_callable=_run,
        pre_message=f"Running {name} in {project_dir.resolve()}...",
    )


@app.command("default")
def default_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Expand pages and rebuild the stylesheets from scratch."""
    run_pipeline("default", project_dir, config, verbose)


@app.command("dev")
def dev_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Build pages and styles, then keep rebuilding on change."""
    run_pipeline("dev", project_dir, config, verbose)


@app.command("build")
def build_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Expand pages and rewrite their paths for deployment."""
    run_pipeline("build", project_dir, config, verbose)


@app.command("test")
def test_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Run the default build non-interactively (for CI)."""
    run_pipeline("test", project_dir, config, verbose)


@app.command("compress")
def compress_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Compress images that changed since their last compression."""
    run_pipeline("compress", project_dir, config, verbose)


@app.command("cleancss")
def cleancss_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Remove unused selectors and minify the result."""
    run_pipeline("cleancss", project_dir, config, verbose)


@app.command("run")
def run_command(
    name: Annotated[str, typer.Argument(help="Pipeline, kind:target task, or task kind")],
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Run any configured pipeline or task by name."""
    run_pipeline(name, project_dir, config, verbose)


@app.command("watch")
def watch_command(
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Watch the sources and re-run the bound pipelines on change."""
    _set_verbosity(verbose)
    cli = BaseCLI("watch")
    cli.handle_cli_operation(
        operation="watch",
        op_callable=lambda: {"success": True, "message": f"{run_watch(project_dir, config)} session(s)"},
        pre_message="Watching for changes (Ctrl+C to stop)...",
    )


@app.command("tree")
def tree(
    filter_name: Annotated[
        str | None,
        typer.Option("-f", "--filter", help="Only show this pipeline or task"),
    ] = None,
    project_dir: ProjectDirOption = Path("."),
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Display every pipeline and the steps it resolves to.

    By default shows only step names and capabilities. Use --verbose to see
    task descriptions, inputs and outputs.
    """
    with handle_errors("tree"):
        build_config = load_config(project_dir, config)
        tree_command(build_config, filter_name=filter_name, verbose=verbose)


def main() -> None:
    """Main entry point for package CLI."""
    app()


if __name__ == "__main__":
    main()
