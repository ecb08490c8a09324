"""CLI command printing the overlaid package manifest."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from haskell_plugins.cli.common import err_console, parse_context, plan_or_exit
from haskell_plugins.manifest import Manifest

logger = logging.getLogger(__name__)


def overlay_command(
    manifest: str,
    command: str = "build",
    project: Optional[str] = None,
    dependency: bool = False,
    no_plugins: bool = False,
) -> None:
    """Print the manifest as the dependency solver would see it.

    The manifest file is only read. The project directory defaults to the
    directory containing it. Only YAML is written to stdout.
    """
    context = parse_context(command, dependency, no_plugins)
    path = Path(manifest)

    try:
        with open(path, "r") as f:
            parsed = Manifest.from_mapping(yaml.safe_load(f) or {})
    except (OSError, yaml.YAMLError, ValueError) as e:
        err_console.print(f"[red]Cannot read manifest {path}: {e}[/red]")
        raise typer.Exit(1)

    plan = plan_or_exit(context, project or str(path.parent), manifest=parsed)
    if not plan.eligibility:
        logger.info("Manifest printed unchanged: %s", plan.eligibility.reason)

    document = yaml.safe_dump(
        plan.manifest.to_mapping(), default_flow_style=False, sort_keys=False
    )
    print(document, end="")
