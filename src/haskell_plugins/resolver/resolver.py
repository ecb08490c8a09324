"""Resolution of plugin requests into concrete package references."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Optional

import httpx

from haskell_plugins.environment import check_encodable
from haskell_plugins.errors import ResolutionError
from haskell_plugins.models import GitSource, PluginRequest, RegistrySource, ResolvedPackage
from haskell_plugins.resolver.base import LookupFailed, RegistryClient, SourceControlClient
from haskell_plugins.resolver.github import GitHubClient
from haskell_plugins.resolver.hackage import HackageClient
from haskell_plugins.resolver.versions import format_version, parse_range, parse_version

if TYPE_CHECKING:
    from haskell_plugins.config.schema import PluginSettings
    from haskell_plugins.merge import PluginSets

logger = logging.getLogger(__name__)


class ResolvedPlugins(Mapping[str, tuple[ResolvedPackage, ...]]):
    """Read-only result of one resolution pass, keyed by namespace.

    Packages within a namespace keep the plugin set order.
    """

    def __init__(self, packages: Mapping[str, tuple[ResolvedPackage, ...]] | None = None):
        self._packages = {ns: tuple(pkgs) for ns, pkgs in (packages or {}).items() if pkgs}

    def __getitem__(self, namespace: str) -> tuple[ResolvedPackage, ...]:
        return self._packages[namespace]

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __repr__(self) -> str:
        return f"ResolvedPlugins({self._packages!r})"

    def packages(self) -> list[ResolvedPackage]:
        """Every resolved package, namespace by namespace."""
        return [pkg for pkgs in self._packages.values() for pkg in pkgs]

    def find(self, namespace: str, display_name: str) -> ResolvedPackage | None:
        for pkg in self._packages.get(namespace, ()):
            if pkg.display_name == display_name:
                return pkg
        return None


class Resolver:
    """
    Resolves merged plugin sets against a registry and a source-control host.

    Lookups run concurrently, bounded by ``max_workers``. Resolution is
    all-or-nothing: the first failure cancels outstanding lookups and is
    raised as :class:`ResolutionError`. Lookups and whole results are cached
    for the lifetime of the resolver, which is one invocation, so every
    consumer of the same plugin sets sees one resolution pass.
    """

    def __init__(
        self,
        registry: RegistryClient,
        source_control: SourceControlClient,
        max_workers: int = 4,
    ):
        """
        Initialize resolver.

        Args:
            registry: Client for registry (Hackage) lookups
            source_control: Client for source-control (GitHub) lookups
            max_workers: Maximum concurrent lookups
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.registry = registry
        self.source_control = source_control
        self.max_workers = max_workers
        self._versions: dict[tuple[str, str | None], str] = {}
        self._commits: dict[tuple[str, str], str] = {}
        self._results: dict[PluginSets, ResolvedPlugins] = {}

    async def resolve(self, plugin_sets: PluginSets) -> ResolvedPlugins:
        """Resolve every request in ``plugin_sets``.

        Args:
            plugin_sets: Merged plugin sets

        Returns:
            One resolved package per request

        Raises:
            EncodingError: If an entry point cannot be encoded (checked before any lookup)
            ResolutionError: If any request cannot be resolved
        """
        cached = self._results.get(plugin_sets)
        if cached is not None:
            return cached

        check_encodable(plugin_sets)

        pending = self._pending_lookups(plugin_sets.requests())
        if pending:
            logger.info("Resolving %d plugin references", len(pending))
            await self._run_lookups(pending)

        resolved = {}
        for namespace, plugin_set in plugin_sets.items():
            resolved[namespace] = tuple(self._build(request) for request in plugin_set.requests())
        result = ResolvedPlugins(resolved)
        self._results[plugin_sets] = result
        return result

    def _pending_lookups(self, requests: list[PluginRequest]) -> dict[tuple, PluginRequest]:
        # One lookup per distinct source; the first request naming it is blamed on failure
        pending: dict[tuple, PluginRequest] = {}
        for request in requests:
            key = _lookup_key(request)
            if key in pending:
                continue
            if key[0] == "registry" and key[1:] in self._versions:
                continue
            if key[0] == "git" and key[1:] in self._commits:
                continue
            pending[key] = request
        return pending

    async def _run_lookups(self, pending: dict[tuple, PluginRequest]) -> None:
        semaphore = asyncio.Semaphore(self.max_workers)

        async def bounded(request: PluginRequest) -> None:
            async with semaphore:
                await self._lookup(request)

        tasks = [asyncio.ensure_future(bounded(request)) for request in pending.values()]
        done, not_done = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

        failed = [task for task in tasks if task in done and task.exception() is not None]
        if not failed:
            return

        for task in not_done:
            task.cancel()
        await asyncio.gather(*not_done, return_exceptions=True)

        error = failed[0].exception()
        logger.warning("Plugin resolution failed, cancelled %d outstanding lookups", len(not_done))
        raise error

    async def _lookup(self, request: PluginRequest) -> None:
        source = request.source
        try:
            if isinstance(source, RegistrySource):
                self._versions[(source.package, source.constraint)] = await self._newest_version(
                    source
                )
            else:
                self._commits[(source.repository, source.ref)] = (
                    await self.source_control.commit_for(source.repository, source.ref)
                )
        except LookupFailed as e:
            raise ResolutionError(request, str(e)) from e
        except ValueError as e:
            raise ResolutionError(request, f"invalid version constraint: {e}") from e

    async def _newest_version(self, source: RegistrySource) -> str:
        version_range = parse_range(source.constraint)
        available = []
        for text in await self.registry.versions(source.package):
            try:
                available.append(parse_version(text))
            except ValueError:
                logger.debug("Ignoring unparseable version %r of %s", text, source.package)

        if not available:
            raise LookupFailed(f"package '{source.package}' has no released versions")
        newest = version_range.newest(available)
        if newest is None:
            raise LookupFailed(f"no version of '{source.package}' satisfies '{version_range}'")

        logger.debug("Selected %s-%s", source.package, format_version(newest))
        return format_version(newest)

    def _build(self, request: PluginRequest) -> ResolvedPackage:
        source = request.source
        if isinstance(source, RegistrySource):
            return ResolvedPackage(
                namespace=request.namespace,
                display_name=request.display_name,
                package=source.package,
                entry_point=request.entry_point,
                version=self._versions[(source.package, source.constraint)],
                constraint=source.constraint,
            )
        return ResolvedPackage(
            namespace=request.namespace,
            display_name=request.display_name,
            package=source.package or request.display_name,
            entry_point=request.entry_point,
            repository=source.repository,
            ref=source.ref,
            commit=self._commits[(source.repository, source.ref)],
        )


def _lookup_key(request: PluginRequest) -> tuple:
    source = request.source
    if isinstance(source, GitSource):
        return ("git", source.repository, source.ref)
    return ("registry", source.package, source.constraint)


async def resolve_with_settings(
    plugin_sets: PluginSets, settings: PluginSettings
) -> ResolvedPlugins:
    """Resolve against Hackage and GitHub as configured by ``settings``."""
    async with httpx.AsyncClient(timeout=settings.timeout) as client:
        resolver = Resolver(
            registry=HackageClient(settings.hackage_url, settings.timeout, client=client),
            source_control=GitHubClient(
                settings.github_api_url,
                settings.timeout,
                token=settings.github_token,
                client=client,
            ),
            max_workers=settings.max_workers,
        )
        return await resolver.resolve(plugin_sets)


def resolve_plugin_sets(
    plugin_sets: PluginSets,
    settings: PluginSettings,
    resolver: Optional[Resolver] = None,
) -> ResolvedPlugins:
    """Synchronous entry point for one resolution pass.

    Args:
        plugin_sets: Merged plugin sets
        settings: Tool settings
        resolver: Preconfigured resolver; a Hackage/GitHub one is built if None

    Returns:
        Resolved plugins
    """
    if plugin_sets.is_empty:
        return ResolvedPlugins()
    if resolver is not None:
        return asyncio.run(resolver.resolve(plugin_sets))
    return asyncio.run(resolve_with_settings(plugin_sets, settings))
