"""Typer-based CLI for codemap: scan files and query their code graph."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__, config, config_manager
from .codemap import CodeMapBuilder
from .graph_builder import builder_from_config
from .models import Graph, Node
from .parser import scan_file
from .query import (
    find_nodes,
    get_file_dependencies,
    get_file_dependents,
    get_function_callers,
    get_function_calls,
    get_subgraph,
    summarize,
)

app = typer.Typer(
    help="🗺️  codemap: structural code graph and code map for a list of source files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration: show and change settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codemap v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """codemap: regex-based structure extraction across JS/TS, Python, Java and C#."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _build_graph(files: List[str]) -> Graph:
    return builder_from_config().build(files)


def _resolve_node(graph: Graph, node_id: str) -> Node:
    """Look a node up by id, falling back to a unique label match."""
    node = graph.get_node(node_id)
    if node is not None:
        return node
    matches = find_nodes(graph, node_id)
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise typer.BadParameter(f"Unknown node '{node_id}'.")
    ids = ", ".join(m.id for m in matches)
    raise typer.BadParameter(f"'{node_id}' is ambiguous: {ids}")


@app.command("scan")
def scan(file: str = typer.Argument(..., help="Source file to scan.")):
    """Print the extracted structure of one file as JSON."""
    _echo_json(scan_file(file).to_dict())


@app.command("graph")
def graph(
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
    as_json: bool = typer.Option(False, "--json", help="Print the full graph as JSON."),
):
    """Build the code graph and print a summary."""
    built = _build_graph(files)
    if as_json:
        _echo_json(built.to_dict())
        return

    counts = summarize(built)
    table = Table(title="Code graph", title_style="bold cyan")
    table.add_column("Kind", style="dim")
    table.add_column("Type", style="yellow")
    table.add_column("Count", justify="right")
    for node_type, count in sorted(counts["nodes"].items()):
        table.add_row("node", node_type, str(count))
    for edge_type, count in sorted(counts["edges"].items()):
        table.add_row("edge", edge_type, str(count))
    console.print(table)

    degraded = [n for n in built.nodes_of_type("file") if n.error]
    for node in degraded:
        console.print(f"  [red]✗[/red] {node.path}: {node.error}")


@app.command("map")
def code_map(
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
    as_json: bool = typer.Option(False, "--json", help="Print the full code map as JSON."),
):
    """Build the code map (file structures plus cross-file relationships)."""
    scanner = config_manager.load_config()["scanner"]
    built = CodeMapBuilder(
        workers=scanner["workers"], component_window=scanner["component_window"],
    ).build(files)
    if as_json:
        _echo_json(built.to_dict())
        return

    table = Table(title="Code map", title_style="bold cyan")
    table.add_column("File", style="yellow")
    table.add_column("Language")
    table.add_column("Imports", justify="right")
    table.add_column("Definitions", justify="right")
    table.add_column("Exports", justify="right")
    for structure in built.files:
        language = structure.language if not structure.error else f"[red]{structure.language}[/red]"
        table.add_row(
            structure.path,
            language,
            str(len(structure.imports)),
            str(len(structure.definitions)),
            str(len(structure.exports)),
        )
    console.print(table)
    for rel in built.relationships:
        if rel.type == "imports":
            continue
        detail = rel.type_name or f"{rel.source_type} → {rel.target_type}"
        flag = " [dim](ambiguous)[/dim]" if rel.ambiguous else ""
        console.print(f"  {rel.source} [cyan]{rel.type}[/cyan] {rel.target}: {detail}{flag}")


@app.command("subgraph")
def subgraph(
    node_id: str = typer.Argument(..., help="Center node id or unique label."),
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Maximum hops from the center."),
):
    """Print the neighbourhood of a node as JSON."""
    built = _build_graph(files)
    node = _resolve_node(built, node_id)
    hops = depth if depth is not None else config_manager.get_setting("graph", "subgraph_depth")
    _echo_json(get_subgraph(built, node.id, hops).to_dict())


@app.command("calls")
def calls(
    node_id: str = typer.Argument(..., help="Function node id or unique label."),
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
):
    """List the functions a function calls."""
    built = _build_graph(files)
    node = _resolve_node(built, node_id)
    _echo_json([asdict(ref) for ref in get_function_calls(built, node.id)])


@app.command("callers")
def callers(
    node_id: str = typer.Argument(..., help="Function node id or unique label."),
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
):
    """List the functions that call a function."""
    built = _build_graph(files)
    node = _resolve_node(built, node_id)
    _echo_json([asdict(ref) for ref in get_function_callers(built, node.id)])


@app.command("deps")
def deps(
    path: str = typer.Argument(..., help="File whose imports to list."),
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
):
    """List the files a file imports."""
    built = _build_graph(files)
    node = _resolve_node(built, path)
    _echo_json([asdict(ref) for ref in get_file_dependencies(built, node.id)])


@app.command("dependents")
def dependents(
    path: str = typer.Argument(..., help="File whose importers to list."),
    files: List[str] = typer.Argument(..., help="Source files to analyze, in order."),
):
    """List the files that import a file."""
    built = _build_graph(files)
    node = _resolve_node(built, path)
    _echo_json([asdict(ref) for ref in get_file_dependents(built, node.id)])


@config_app.command("show")
def config_show():
    """Show the effective configuration."""
    settings = config_manager.load_config()
    console.print(f"  [dim]Config file[/dim]  [white]{config.CONFIG_FILE}[/white]")
    table = Table(show_header=True, title_style="bold cyan")
    table.add_column("Setting", style="yellow")
    table.add_column("Value")
    for section, values in settings.items():
        for key, value in values.items():
            shown = ", ".join(value) if isinstance(value, list) else str(value)
            table.add_row(f"{section}.{key}", shown)
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting as section.key, e.g. scanner.workers."),
    value: str = typer.Argument(..., help="New value; lists are comma separated."),
):
    """Change one setting in the config file."""
    section, _, name = key.partition(".")
    if not name:
        raise typer.BadParameter("Use the form section.key, e.g. scanner.workers.")
    try:
        saved = config_manager.save_config(section, name, value)
    except config_manager.ConfigError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Set {section}.{name} = {saved}")


if __name__ == "__main__":
    app()
