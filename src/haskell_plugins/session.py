"""The plugin pipeline for one build-tool invocation."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from haskell_plugins.config.loader import discover_layers
from haskell_plugins.config.schema import PluginSettings
from haskell_plugins.environment import EMPTY_ENCODING, encode_environment, launch_environment
from haskell_plugins.manifest import Manifest, apply_overlay
from haskell_plugins.merge import PluginSets, merge_layers
from haskell_plugins.mode import Eligibility, InvocationContext, classify
from haskell_plugins.models import ConfigLayer
from haskell_plugins.resolver.resolver import ResolvedPlugins, Resolver, resolve_plugin_sets

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationPlan:
    """Everything plugin injection contributes to one invocation."""

    eligibility: Eligibility
    manifest: Optional[Manifest]
    layers: tuple[ConfigLayer, ...] = ()
    plugin_sets: PluginSets = field(default_factory=PluginSets)
    resolved: ResolvedPlugins = field(default_factory=ResolvedPlugins)
    environment: Mapping[str, str] = field(default_factory=lambda: EMPTY_ENCODING)

    @property
    def has_plugins(self) -> bool:
        return bool(self.environment)


def prepare_invocation(
    context: InvocationContext,
    project_dir: Path,
    manifest: Optional[Manifest] = None,
    settings: Optional[PluginSettings] = None,
    resolver: Optional[Resolver] = None,
) -> InvocationPlan:
    """Run classification, loading, merging, resolution, overlay and encoding.

    Configuration is only read when injection is eligible, so an ineligible
    invocation is unaffected by plugin files, even malformed ones.

    Args:
        context: The current invocation
        project_dir: Directory of the top-level package
        manifest: Parsed manifest to overlay, if the caller needs one
        settings: Tool settings, defaults if None
        resolver: Resolver to use instead of Hackage/GitHub

    Returns:
        The plan; with the original manifest and no variables when ineligible

    Raises:
        ConfigError: If a configuration file is malformed or ambiguous
        EncodingError: If an entry point cannot be encoded
        ResolutionError: If any requested plugin cannot be resolved
    """
    eligibility = classify(context)
    if not eligibility:
        logger.info("Plugins not injected: %s", eligibility.reason)
        return InvocationPlan(eligibility=eligibility, manifest=manifest)

    if settings is None:
        settings = PluginSettings()

    layers = tuple(discover_layers(project_dir, settings))
    plugin_sets = merge_layers(layers)
    if plugin_sets.is_empty:
        logger.debug("No plugins requested")
        return InvocationPlan(
            eligibility=eligibility,
            manifest=manifest,
            layers=layers,
            plugin_sets=plugin_sets,
        )

    resolved = resolve_plugin_sets(plugin_sets, settings, resolver=resolver)
    environment = encode_environment(plugin_sets, resolved, eligibility)
    overlaid = apply_overlay(manifest, resolved, eligibility) if manifest is not None else None

    return InvocationPlan(
        eligibility=eligibility,
        manifest=overlaid,
        layers=layers,
        plugin_sets=plugin_sets,
        resolved=resolved,
        environment=environment,
    )


def run_with_plugins(
    argv: Sequence[str],
    plan: InvocationPlan,
    base_env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> int:
    """Launch a consumer process with the plan's plugin environment.

    Args:
        argv: Command and arguments
        plan: Prepared invocation plan
        base_env: Environment to start from, the current one if None
        cwd: Working directory for the child

    Returns:
        The child's exit code
    """
    if base_env is None:
        base_env = os.environ
    env = launch_environment(base_env, plan.environment)

    logger.debug("Launching %s with %d plugin variables", argv[0], len(plan.environment))
    completed = subprocess.run(list(argv), env=env, cwd=cwd)
    return completed.returncode
