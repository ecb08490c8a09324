"""In-memory package manifest and the plugin overlay applied to it.

The manifest mirrors an hpack ``package.yaml`` that the build tool has
already parsed. The overlay adds every resolved plugin package to every
buildable component, because there is no way to know in advance which
component will reference a plugin's entry point. The result only lives in
memory; nothing here writes files.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from haskell_plugins.mode import Eligibility
    from haskell_plugins.resolver.resolver import ResolvedPlugins

logger = logging.getLogger(__name__)

_PACKAGE_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9-]*)")


class ComponentKind(Enum):
    """Buildable component kinds, keyed by their hpack section."""

    LIBRARY = "library"
    INTERNAL_LIBRARY = "internal-libraries"
    EXECUTABLE = "executables"
    TEST_SUITE = "tests"
    BENCHMARK = "benchmarks"


_NAMED_SECTIONS = (
    ComponentKind.INTERNAL_LIBRARY,
    ComponentKind.EXECUTABLE,
    ComponentKind.TEST_SUITE,
    ComponentKind.BENCHMARK,
)


def dependency_name(dependency: str) -> str:
    """Package name of a dependency string such as ``hspec >=2.7``."""
    match = _PACKAGE_NAME_RE.match(dependency)
    if not match:
        raise ValueError(f"Invalid dependency {dependency!r}")
    return match.group(1)


@dataclass(frozen=True)
class Component:
    """A buildable component and its dependencies."""

    kind: ComponentKind
    name: str | None = None  # None for the main library
    dependencies: tuple[str, ...] = ()
    fields: Mapping[str, Any] = field(default_factory=dict)

    def depends_on(self, package: str) -> bool:
        return any(dependency_name(dep) == package for dep in self.dependencies)


@dataclass(frozen=True)
class ExtraDep:
    """A package taken from a repository at a fixed commit."""

    repository: str
    commit: str

    def to_mapping(self) -> dict[str, str]:
        return {"github": self.repository, "commit": self.commit}


@dataclass(frozen=True)
class Manifest:
    """Package manifest with its buildable components."""

    name: str
    dependencies: tuple[str, ...] = ()
    components: tuple[Component, ...] = ()
    extra_deps: tuple[ExtraDep, ...] = ()
    fields: Mapping[str, Any] = field(default_factory=dict)

    def component(self, kind: ComponentKind, name: str | None = None) -> Component | None:
        for component in self.components:
            if component.kind == kind and component.name == name:
                return component
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Manifest:
        """Build from a parsed ``package.yaml`` document.

        Raises:
            ValueError: If the document is not a manifest
        """
        if not isinstance(data, Mapping):
            raise ValueError("Manifest must be a mapping")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Manifest has no package name")

        known = {"name", "dependencies", "extra-deps", ComponentKind.LIBRARY.value}
        known.update(kind.value for kind in _NAMED_SECTIONS)

        components = []
        if data.get(ComponentKind.LIBRARY.value) is not None:
            components.append(_component_from(ComponentKind.LIBRARY, None, data["library"]))
        for kind in _NAMED_SECTIONS:
            section = data.get(kind.value) or {}
            if not isinstance(section, Mapping):
                raise ValueError(f"'{kind.value}' must map component names to settings")
            for component_name, body in section.items():
                components.append(_component_from(kind, str(component_name), body))

        extra_deps = []
        for raw in data.get("extra-deps") or []:
            if isinstance(raw, Mapping) and "github" in raw and "commit" in raw:
                extra_deps.append(ExtraDep(str(raw["github"]), str(raw["commit"])))
            else:
                raise ValueError(f"Unsupported extra-deps entry {raw!r}")

        return cls(
            name=name,
            dependencies=_normalize_dependencies(data.get("dependencies")),
            components=tuple(components),
            extra_deps=tuple(extra_deps),
            fields={k: v for k, v in data.items() if k not in known},
        )

    def to_mapping(self) -> dict[str, Any]:
        """Render back into the ``package.yaml`` document shape."""
        data: dict[str, Any] = {"name": self.name}
        data.update(self.fields)
        if self.dependencies:
            data["dependencies"] = list(self.dependencies)

        for component in self.components:
            body = dict(component.fields)
            if component.dependencies:
                body["dependencies"] = list(component.dependencies)
            if component.kind == ComponentKind.LIBRARY:
                data[ComponentKind.LIBRARY.value] = body
            else:
                data.setdefault(component.kind.value, {})[component.name] = body

        if self.extra_deps:
            data["extra-deps"] = [dep.to_mapping() for dep in self.extra_deps]
        return data


def _component_from(kind: ComponentKind, name: str | None, body: Any) -> Component:
    if body is None:
        body = {}
    if not isinstance(body, Mapping):
        raise ValueError(f"Component '{name or kind.value}' must be a mapping")
    return Component(
        kind=kind,
        name=name,
        dependencies=_normalize_dependencies(body.get("dependencies")),
        fields={k: v for k, v in body.items() if k != "dependencies"},
    )


def _normalize_dependencies(raw: Any) -> tuple[str, ...]:
    # hpack accepts a single string, a list, or a name -> constraint mapping
    if raw is None:
        return ()
    if isinstance(raw, str):
        dependencies = [raw]
    elif isinstance(raw, Mapping):
        if not all(c is None or isinstance(c, str) for c in raw.values()):
            raise ValueError("Only string version constraints are supported in dependency maps")
        dependencies = [_join_constraint(name, constraint) for name, constraint in raw.items()]
    elif isinstance(raw, list):
        dependencies = [_list_dependency(dep) for dep in raw]
    else:
        raise ValueError(f"Unsupported dependencies value {raw!r}")

    result = tuple(dep.strip() for dep in dependencies)
    for dep in result:
        dependency_name(dep)
    return result


def _list_dependency(dep: Any) -> str:
    if isinstance(dep, str):
        return dep
    if isinstance(dep, Mapping):
        # - name: base
        #   version: ">=4"
        unsupported = set(dep) - {"name", "version"}
        if unsupported:
            raise ValueError(
                f"Unsupported dependency fields {sorted(unsupported)} in {dict(dep)!r}"
            )
        if not isinstance(dep.get("name"), str):
            raise ValueError(f"Dependency {dict(dep)!r} needs a 'name'")
        version = dep.get("version")
        if version is not None and not isinstance(version, str):
            raise ValueError(f"Dependency version must be a string in {dict(dep)!r}")
        return _join_constraint(dep["name"], version)
    raise ValueError(f"Unsupported dependency {dep!r}")


def _join_constraint(name: Any, constraint: str | None) -> str:
    return f"{name} {constraint}" if constraint else str(name)


def _add_dependencies(existing: tuple[str, ...], additions: Iterable[str]) -> tuple[str, ...]:
    present = {dependency_name(dep) for dep in existing}
    result = list(existing)
    for dep in additions:
        name = dependency_name(dep)
        if name not in present:
            present.add(name)
            result.append(dep)
    return tuple(result)


def apply_overlay(
    manifest: Manifest,
    resolved: ResolvedPlugins,
    eligibility: Eligibility,
) -> Manifest:
    """Return ``manifest`` with every resolved plugin added to every component.

    A pure function of its inputs: a package a component already depends on
    is not added again, so applying the overlay to its own output changes
    nothing.

    Args:
        manifest: Manifest as parsed from the tracked file
        resolved: Result of the single resolution pass
        eligibility: Decision from :func:`haskell_plugins.mode.classify`

    Returns:
        The overlaid manifest, or ``manifest`` itself when ineligible or
        nothing was resolved
    """
    if not eligibility or not resolved:
        return manifest

    packages = resolved.packages()
    additions = [pkg.dependency() for pkg in packages]

    components = tuple(
        replace(component, dependencies=_add_dependencies(component.dependencies, additions))
        for component in manifest.components
    )

    extra_deps = list(manifest.extra_deps)
    for pkg in packages:
        if pkg.is_git:
            dep = ExtraDep(pkg.repository or "", pkg.commit or "")
            if dep not in extra_deps:
                extra_deps.append(dep)

    logger.info(
        "Overlaid %d plugin packages onto %d components of %s",
        len({dependency_name(dep) for dep in additions}),
        len(components),
        manifest.name,
    )
    return replace(manifest, components=components, extra_deps=tuple(extra_deps))
