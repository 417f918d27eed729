"""Main CLI entry point using Typer."""

import json
from pathlib import Path
from typing import Any

import anyio
import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from taskweave import __version__
from taskweave.core.config import get_settings
from taskweave.core.exceptions import TaskweaveError
from taskweave.core.logging import configure_logging
from taskweave.core.planner import Planner
from taskweave.decomposition.library import (
    DEFAULT_LIBRARY,
    build_default_registry,
    default_patterns,
)
from taskweave.decomposition.loader import (
    load_document,
    load_project_definition,
    patterns_from_dict,
    registry_from_dict,
)
from taskweave.decomposition.models import Pattern, PlanResult, ValidationResult
from taskweave.decomposition.registry import MethodRegistry

app = typer.Typer(
    name="taskweave",
    help="Taskweave - decompose project definitions into ordered implementation tasks",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()

EXIT_VALIDATION_FAILED = 1
EXIT_STRUCTURAL_ERROR = 2


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]Taskweave[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    Taskweave - hierarchical task decomposition.

    Expands a project definition into primitive tasks, orders them by their
    dependencies and checks that every mandatory component is covered.
    """
    pass


def _load_library(path: Path | str | None) -> tuple[MethodRegistry, list[Pattern]]:
    """Load registry and patterns from a library file, or the built-in library."""
    if path is None:
        return build_default_registry(), default_patterns()

    data = load_document(path)
    registry = registry_from_dict(data, source=str(path))
    patterns = (
        patterns_from_dict(data, source=str(path)) if "patterns" in data else default_patterns()
    )
    return registry, patterns


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))
    console.print(f"[green]Saved to {path}[/green]")


def _render_plan(result: PlanResult) -> None:
    graph = result.graph
    waves = {node_id: i for i, wave in enumerate(graph.waves) for node_id in wave}

    table = Table(title=f"Task Plan: {escape(result.project.name)}")
    table.add_column("#", style="dim")
    table.add_column("Wave", style="cyan")
    table.add_column("Task", style="bold")
    table.add_column("Category")
    table.add_column("Depends On")
    table.add_column("Patterns", style="magenta")

    for index, node in enumerate(graph.ordered_nodes(), start=1):
        deps = ", ".join(graph.get(d).name for d in graph.dependencies_of(node.id)) or "-"
        table.add_row(
            str(index),
            str(waves.get(node.id, 0)),
            node.name,
            node.category.value,
            deps[:40] + "..." if len(deps) > 40 else deps,
            ", ".join(sorted(node.patterns)) or "-",
        )

    console.print(table)

    validation = result.validation
    if validation.success:
        console.print("\n[bold green]All mandatory components covered.[/bold green]")
        return

    lines: list[str] = []
    if validation.missing_components:
        lines.append("[bold]Missing components:[/bold]")
        lines.extend(f"  - {escape(c)}" for c in validation.missing_components)
    if validation.errors:
        lines.append("[bold]Decomposition errors:[/bold]")
        lines.extend(f"  - {escape(e['message'])}" for e in validation.errors)
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold red]Validation failed[/bold red]",
            border_style="red",
        )
    )


@app.command()
def plan(
    project_file: Path = typer.Argument(..., help="Project definition (YAML or JSON)"),
    registry: Path | None = typer.Option(
        None,
        "--registry",
        "-r",
        help="Method library file (defaults to the built-in library)",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the plan as JSON",
    ),
    max_depth: int | None = typer.Option(
        None,
        "--max-depth",
        help="Maximum hierarchy depth",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Worker threads for parallel root expansion",
    ),
    parallel: bool = typer.Option(
        False,
        "--parallel",
        help="Expand root tasks on worker threads",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
) -> None:
    """
    Decompose a project definition into an ordered task plan.

    Example:
        taskweave plan project.yaml -o plan.json
    """
    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(settings)

    try:
        project = load_project_definition(project_file)
        method_registry, patterns = _load_library(registry or settings.registry_path)

        planner = Planner(
            registry=method_registry,
            patterns=patterns,
            settings=settings,
            max_depth=max_depth,
            max_workers=workers,
        )
        if parallel:
            result = anyio.run(planner.plan_async, project)
        else:
            result = planner.plan(project)
    except TaskweaveError as e:
        console.print(f"[bold red]{type(e).__name__}:[/bold red] {escape(str(e))}")
        if output:
            _write_json(output, {"validation": ValidationResult.from_error(e).to_dict()})
        raise typer.Exit(code=EXIT_STRUCTURAL_ERROR) from e

    _render_plan(result)

    if output:
        _write_json(output, result.to_dict())

    if not result.success:
        raise typer.Exit(code=EXIT_VALIDATION_FAILED)


@app.command()
def methods(
    registry: Path | None = typer.Option(
        None,
        "--registry",
        "-r",
        help="Method library file (defaults to the built-in library)",
    ),
) -> None:
    """
    List decomposition methods per task type in selection order.
    """
    try:
        method_registry, _ = _load_library(registry)
    except TaskweaveError as e:
        console.print(f"[bold red]{type(e).__name__}:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=EXIT_STRUCTURAL_ERROR) from e

    table = Table(title="Decomposition Methods")
    table.add_column("Task Type", style="bold")
    table.add_column("Priority", style="cyan")
    table.add_column("Method")
    table.add_column("Condition")
    table.add_column("Subtasks")

    for task_type in method_registry.task_types():
        for method in method_registry.methods_for(task_type):
            table.add_row(
                task_type,
                str(method.effective_priority),
                method.name,
                escape(method.condition.signature()),
                ", ".join(method.subtasks),
            )

    console.print(table)


@app.command()
def library(
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the built-in library as YAML instead of printing it",
    ),
) -> None:
    """
    Dump the built-in method library as a YAML starting point.
    """
    document = yaml.safe_dump(DEFAULT_LIBRARY, sort_keys=False)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(document)
        console.print(f"[green]Saved to {output}[/green]")
    else:
        typer.echo(document)


if __name__ == "__main__":
    app()
