"""CLI command to display pipelines and their resolved steps as a tree."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from rich.console import Console
from rich.markup import escape

from ...config import BuildConfig
from ...defaults import PIPELINE_NAMES
from ...definitions import TaskDefinition
from ...errors import ConfigurationError
from ...tasks import TASK_REGISTRY, TaskKind
from ..base import get_logger

logger = get_logger(__name__)


@dataclass
class StepNode:
    """A pipeline alias, or a task step with its capability."""

    name: str
    help_text: str | None = None
    capability: str | None = None
    is_pipeline: bool = False
    is_broken: bool = False
    details: list[str] = field(default_factory=list)
    children: list[StepNode] = field(default_factory=list)


def _task_node(task: TaskDefinition, registry: Mapping[str, TaskKind], verbose: bool) -> StepNode:
    kind = registry.get(task.kind)
    node = StepNode(
        name=task.name,
        help_text=kind.description if kind and verbose else None,
        capability=kind.capability if kind else None,
        is_broken=kind is None,
    )
    if verbose:
        if task.inputs:
            node.details.append("in: " + ", ".join(task.inputs))
        if task.outputs:
            node.details.append("out: " + ", ".join(task.outputs))
        if task.cwd:
            node.details.append(f"cwd: {task.cwd}")
    return node


def build_pipeline_node(
    config: BuildConfig,
    name: str,
    *,
    registry: Mapping[str, TaskKind] = TASK_REGISTRY,
    verbose: bool = False,
    chain: tuple[str, ...] = (),
) -> StepNode:
    """Build the tree of a pipeline, keeping nested aliases as branches.

    Unknown names and cycles become broken nodes instead of raising, so the
    tree can still show the rest of the configuration.
    """
    if name in config.pipelines:
        node = StepNode(name=name, is_pipeline=True)
        if name in chain:
            node.is_broken = True
            node.help_text = "cycle"
            return node
        for step in config.pipelines[name]:
            node.children.append(
                build_pipeline_node(config, step, registry=registry, verbose=verbose, chain=(*chain, name))
            )
        return node

    if name in config.tasks:
        return _task_node(config.tasks[name], registry, verbose)

    targets = config.targets_of(name)
    if not targets:
        return StepNode(name=name, is_broken=True)
    node = StepNode(name=name, is_pipeline=True, help_text="every target" if verbose else None)
    node.children = [_task_node(task, registry, verbose) for task in targets]
    return node


def walk_pipelines(
    config: BuildConfig,
    *,
    filter_name: str | None = None,
    verbose: bool = False,
) -> StepNode:
    """Build a tree of every pipeline (or just one) of a configuration."""
    root = StepNode(name=config.project.name, is_pipeline=True)
    if filter_name:
        if filter_name not in config.pipelines and filter_name not in config.tasks and not config.targets_of(filter_name):
            raise ConfigurationError(f"Unknown task or pipeline: {filter_name!r}")
        root.children.append(build_pipeline_node(config, filter_name, verbose=verbose))
        return root

    # Command-line pipelines first, then helper aliases
    names = [n for n in PIPELINE_NAMES if n in config.pipelines]
    names += sorted(n for n in config.pipelines if n not in PIPELINE_NAMES)
    for name in names:
        root.children.append(build_pipeline_node(config, name, verbose=verbose))
    return root


def render_tree(
    node: StepNode,
    console: Console | None = None,
    indent: int = 0,
    indent_str: str = "  ",
) -> None:
    """Render a pipeline tree using Rich with indentation and colors."""
    if console is None:
        console = Console()

    prefix = indent_str * indent
    name = escape(node.name)

    if node.is_broken:
        reason = f" {escape(node.help_text)}" if node.help_text else ""
        console.print(f"{prefix}[red dim]{name} \\[BROKEN]{reason}[/red dim]")
    elif node.is_pipeline:
        if indent == 0:
            label_color = "bold cyan"
        elif indent == 1:
            label_color = "bold yellow"
        else:
            label_color = "bold blue"
        label = f"{prefix}[{label_color}]{name}[/{label_color}]"
        if node.help_text:
            label += f" [dim]({escape(node.help_text)})[/dim]"
        console.print(label)
    else:
        label = f"{prefix}[white]{name}[/white]"
        if node.capability:
            label += f" [magenta]{node.capability}[/magenta]"
        if node.help_text:
            label += f" [dim]{escape(node.help_text)}[/dim]"
        console.print(label)
        for detail in node.details:
            console.print(f"{prefix}{indent_str}[dim]{escape(detail)}[/dim]")

    for child in node.children:
        render_tree(child, console=console, indent=indent + 1, indent_str=indent_str)


def tree_command(
    config: BuildConfig,
    filter_name: str | None = None,
    verbose: bool = False,
    console: Console | None = None,
) -> StepNode:
    """Display the pipelines of a configuration.

    Args:
        config: Loaded build configuration.
        filter_name: Only show this pipeline or task.
        verbose: Show task descriptions, inputs and outputs.
        console: Rich console to print to (a new one by default).

    Returns:
        The rendered tree.
    """
    tree = walk_pipelines(config, filter_name=filter_name, verbose=verbose)
    logger.debug("Rendering %d pipeline(s)", len(tree.children))
    render_tree(tree, console=console)
    return tree
