"""CLI commands exposing the plugin environment."""

from __future__ import annotations

import typer

from haskell_plugins.cli.common import err_console, parse_context, plan_or_exit
from haskell_plugins.environment import render_exports
from haskell_plugins.session import run_with_plugins


def env_command(
    command: str,
    project: str = ".",
    dependency: bool = False,
    no_plugins: bool = False,
) -> None:
    """Print ``export`` lines for the plugin variables of this invocation."""
    context = parse_context(command, dependency, no_plugins)
    plan = plan_or_exit(context, project)

    if not plan.eligibility:
        err_console.print(f"[dim]No plugins: {plan.eligibility.reason}[/dim]")
        return
    if not plan.has_plugins:
        err_console.print("[dim]No plugins requested.[/dim]")
        return

    # Plain print so the output can be eval'd by a shell
    print(render_exports(plan.environment))


def exec_command(
    command: str,
    argv: list[str],
    project: str = ".",
    dependency: bool = False,
    no_plugins: bool = False,
) -> None:
    """Run ``argv`` with the plugin environment and exit with its status."""
    context = parse_context(command, dependency, no_plugins)
    plan = plan_or_exit(context, project)

    try:
        code = run_with_plugins(argv, plan)
    except OSError as e:
        err_console.print(f"[red]Cannot run {argv[0]}: {e}[/red]")
        raise typer.Exit(127)
    raise typer.Exit(code)
