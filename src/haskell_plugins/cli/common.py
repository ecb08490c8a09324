"""Helpers shared by CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from haskell_plugins.config.loader import load_settings
from haskell_plugins.errors import PluginError
from haskell_plugins.manifest import Manifest
from haskell_plugins.mode import CommandKind, InvocationContext
from haskell_plugins.session import InvocationPlan, prepare_invocation

err_console = Console(stderr=True)


def parse_context(command: str, dependency: bool, no_plugins: bool) -> InvocationContext:
    """Build the invocation context from CLI options."""
    try:
        kind = CommandKind(command.lower())
    except ValueError:
        choices = ", ".join(kind.value for kind in CommandKind)
        err_console.print(f"[red]Unknown command '{command}'. Expected one of: {choices}[/red]")
        raise typer.Exit(2)
    return InvocationContext(command=kind, is_top_level=not dependency, plugins_disabled=no_plugins)


def plan_or_exit(
    context: InvocationContext,
    project: str,
    manifest: Optional[Manifest] = None,
) -> InvocationPlan:
    """Prepare the invocation, turning plugin errors into a red message and exit 1."""
    try:
        settings = load_settings()
        return prepare_invocation(
            context,
            project_dir=Path(project),
            manifest=manifest,
            settings=settings,
        )
    except PluginError as e:
        err_console.print(f"[red]Plugin error: {e}[/red]")
        raise typer.Exit(1)
