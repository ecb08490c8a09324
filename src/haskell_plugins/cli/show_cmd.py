"""CLI command listing merged plugin requests."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from haskell_plugins.cli.common import err_console
from haskell_plugins.config.loader import discover_layers, load_settings
from haskell_plugins.environment import variable_name
from haskell_plugins.errors import PluginError
from haskell_plugins.merge import merge_layers
from haskell_plugins.models import GitSource

console = Console()


def show_command(project: str = ".") -> None:
    """Show merged plugin requests without resolving them."""
    try:
        settings = load_settings()
        layers = discover_layers(Path(project), settings)
        plugin_sets = merge_layers(layers)
    except PluginError as e:
        err_console.print(f"[red]Plugin error: {e}[/red]")
        raise typer.Exit(1)

    for layer in layers:
        if layer.path is None:
            console.print(f"[dim]{layer.name}: no file[/dim]")
            continue
        state = f"{len(layer.requests)} requests" if layer.path.exists() else "not found"
        console.print(f"[dim]{layer.name}: {layer.path} ({state})[/dim]")

    if plugin_sets.is_empty:
        console.print("[dim]No plugins requested.[/dim]")
        return

    table = Table(title="Requested Plugins")
    table.add_column("Namespace", style="cyan")
    table.add_column("Name")
    table.add_column("Source")
    table.add_column("Entry Point", style="green")
    table.add_column("Layer")

    for namespace, plugin_set in plugin_sets.items():
        for request in plugin_set.requests():
            source = request.source
            if isinstance(source, GitSource):
                origin = f"[yellow]git[/yellow] {source.repository}@{source.ref}"
            else:
                origin = f"hackage {source.package} {source.constraint or ''}".rstrip()
            table.add_row(
                f"{namespace} ({variable_name(namespace)})",
                request.display_name,
                origin,
                request.entry_point,
                request.layer,
            )

    console.print(table)
