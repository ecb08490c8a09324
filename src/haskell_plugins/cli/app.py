"""Main CLI application using Typer."""

import logging
from typing import List

import typer
from rich.console import Console

from haskell_plugins import __version__

app = typer.Typer(
    name="haskell-plugins",
    help="haskell-plugins - per-user, per-project plugins for Haskell development tools",
    no_args_is_help=True,
)

console = Console()

COMMAND_HELP = "Build-tool command being run (build, test, bench, exec, run, repl, install, ...)"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Coordinate plugin requests for Haskell development tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version():
    """Show haskell-plugins version."""
    console.print(f"haskell-plugins version {__version__}")


@app.command()
def show(
    project: str = typer.Option(".", "--project", "-p", help="Project directory"),
):
    """Show merged plugin requests and the files they come from."""
    from haskell_plugins.cli.show_cmd import show_command

    show_command(project=project)


@app.command()
def env(
    command: str = typer.Argument(..., help=COMMAND_HELP),
    project: str = typer.Option(".", "--project", "-p", help="Project directory"),
    dependency: bool = typer.Option(
        False, "--dependency", help="Package is built as a dependency of another package"
    ),
    no_plugins: bool = typer.Option(False, "--no-plugins", help="Disable plugin injection"),
):
    """Print plugin environment variables as shell exports."""
    from haskell_plugins.cli.env_cmd import env_command

    env_command(command=command, project=project, dependency=dependency, no_plugins=no_plugins)


@app.command()
def overlay(
    manifest: str = typer.Argument(..., help="Path to package.yaml (never modified)"),
    command: str = typer.Argument("build", help=COMMAND_HELP),
    project: str = typer.Option(None, "--project", "-p", help="Project directory"),
    dependency: bool = typer.Option(
        False, "--dependency", help="Package is built as a dependency of another package"
    ),
    no_plugins: bool = typer.Option(False, "--no-plugins", help="Disable plugin injection"),
):
    """Print the manifest with plugin packages added to every component."""
    from haskell_plugins.cli.overlay_cmd import overlay_command

    overlay_command(
        manifest=manifest,
        command=command,
        project=project,
        dependency=dependency,
        no_plugins=no_plugins,
    )


@app.command(
    "exec",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def exec_(
    command: str = typer.Argument(..., help=COMMAND_HELP),
    argv: List[str] = typer.Argument(..., help="Program and arguments to run"),
    project: str = typer.Option(".", "--project", "-p", help="Project directory"),
    dependency: bool = typer.Option(
        False, "--dependency", help="Package is built as a dependency of another package"
    ),
    no_plugins: bool = typer.Option(False, "--no-plugins", help="Disable plugin injection"),
):
    """Run a program with the plugin environment for COMMAND."""
    from haskell_plugins.cli.env_cmd import exec_command

    exec_command(
        command=command,
        argv=argv,
        project=project,
        dependency=dependency,
        no_plugins=no_plugins,
    )


if __name__ == "__main__":
    app()
