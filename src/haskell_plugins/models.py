"""Plugin request and resolution records."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class RegistrySource:
    """A package published on the registry (Hackage)."""

    package: str
    constraint: str | None = None  # Cabal version range, None = any

    def describe(self) -> str:
        if self.constraint:
            return f"hackage {self.package} {self.constraint}"
        return f"hackage {self.package}"


@dataclass(frozen=True)
class GitSource:
    """A package taken from a GitHub repository at a pinned revision."""

    repository: str  # "owner/repo"
    ref: str
    package: str = ""  # package name inside the repository

    def describe(self) -> str:
        return f"github {self.repository}@{self.ref}"


PluginSource = Union[RegistrySource, GitSource]


@dataclass(frozen=True)
class PluginRequest:
    """One declared intent to use a plugin."""

    namespace: str
    display_name: str
    source: PluginSource
    entry_point: str
    layer: str = ""


@dataclass(frozen=True)
class ConfigLayer:
    """Plugin requests read from a single configuration file.

    Layers are ordered by precedence by whoever holds the list; a later
    layer overrides an earlier one.
    """

    name: str
    path: Path | None = None
    requests: tuple[PluginRequest, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.requests


@dataclass(frozen=True)
class ResolvedPackage:
    """A plugin request turned into fetchable package coordinates."""

    namespace: str
    display_name: str
    package: str
    entry_point: str
    version: str | None = None  # newest registry version satisfying constraint
    constraint: str | None = None
    repository: str | None = None
    ref: str | None = None  # revision as declared
    commit: str | None = None  # commit the declared revision names

    @property
    def is_git(self) -> bool:
        return self.repository is not None

    def dependency(self) -> str:
        """Dependency string for a manifest component."""
        if self.is_git:
            return self.package
        if self.version:
            return f"{self.package} =={self.version}"
        return self.package
