"""Reference resolution against Hackage and GitHub."""

from haskell_plugins.resolver.base import LookupFailed, RegistryClient, SourceControlClient
from haskell_plugins.resolver.github import GitHubClient
from haskell_plugins.resolver.hackage import HackageClient
from haskell_plugins.resolver.resolver import (
    ResolvedPlugins,
    Resolver,
    resolve_plugin_sets,
    resolve_with_settings,
)
from haskell_plugins.resolver.versions import VersionRange, parse_range, parse_version

__all__ = [
    "GitHubClient",
    "HackageClient",
    "LookupFailed",
    "RegistryClient",
    "ResolvedPlugins",
    "Resolver",
    "SourceControlClient",
    "VersionRange",
    "parse_range",
    "parse_version",
    "resolve_plugin_sets",
    "resolve_with_settings",
]
