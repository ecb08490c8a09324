"""Tests for all-or-nothing plugin resolution."""

import asyncio

import pytest

from haskell_plugins.config.schema import PluginSettings
from haskell_plugins.errors import EncodingError, ResolutionError
from haskell_plugins.merge import merge_layers
from haskell_plugins.models import ConfigLayer, GitSource, PluginRequest, RegistrySource
from haskell_plugins.resolver.base import LookupFailed
from haskell_plugins.resolver.resolver import ResolvedPlugins, Resolver, resolve_plugin_sets


def _registry_request(name, entry_point, constraint=None, namespace="hspec"):
    return PluginRequest(namespace, name, RegistrySource(package=name, constraint=constraint), entry_point)


def _git_request(name, repository, ref, entry_point, namespace="hspec"):
    return PluginRequest(
        namespace, name, GitSource(repository=repository, ref=ref, package=name), entry_point
    )


def _sets(*requests):
    return merge_layers([ConfigLayer(name="user", requests=tuple(requests))])


class TestResolver:
    @pytest.mark.asyncio
    async def test_registry_latest(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        resolved = await resolver.resolve(_sets(_registry_request("hspec-fancy", "Formatters.progress")))

        package = resolved.find("hspec", "hspec-fancy")
        assert package.version == "1.0.0"
        assert package.constraint is None
        assert package.entry_point == "Formatters.progress"
        assert package.dependency() == "hspec-fancy ==1.0.0"

    @pytest.mark.asyncio
    async def test_registry_constraint(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        resolved = await resolver.resolve(
            _sets(_registry_request("hspec-fancy", "Formatters.progress", constraint="^>=0.2"))
        )
        assert resolved["hspec"][0].version == "0.2.1"

    @pytest.mark.asyncio
    async def test_git_pinned_revision(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        resolved = await resolver.resolve(
            _sets(_git_request("hspec-git", "someone/hspec-git", "v1.0", "Git.plugin"))
        )

        package = resolved["hspec"][0]
        assert package.is_git
        assert package.ref == "v1.0"
        assert package.commit == "a" * 40
        assert source_control.calls == [("someone/hspec-git", "v1.0")]

    @pytest.mark.asyncio
    async def test_order_preserved(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        resolved = await resolver.resolve(
            _sets(
                _registry_request("hspec-foo", "Foo.plugin"),
                _git_request("hspec-git", "someone/hspec-git", "v1.0", "Git.plugin"),
                _registry_request("hspec-fancy", "Formatters.progress"),
            )
        )
        assert [p.display_name for p in resolved["hspec"]] == ["hspec-foo", "hspec-git", "hspec-fancy"]

    @pytest.mark.asyncio
    async def test_missing_package(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(_sets(_registry_request("hspec-missing", "X.plugin")))
        assert exc_info.value.request.display_name == "hspec-missing"
        assert "hspec-missing" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_version_satisfies_constraint(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        with pytest.raises(ResolutionError, match="satisfies"):
            await resolver.resolve(_sets(_registry_request("hspec-fancy", "F", constraint=">=2")))

    @pytest.mark.asyncio
    async def test_missing_revision(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve(
                _sets(
                    _registry_request("hspec-fancy", "Formatters.progress"),
                    _git_request("hspec-broken", "someone/hspec-git", "deadbeef", "Broken.plugin"),
                )
            )
        assert exc_info.value.request.display_name == "hspec-broken"

    @pytest.mark.asyncio
    async def test_delimiter_rejected_before_lookups(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        with pytest.raises(EncodingError):
            await resolver.resolve(_sets(_registry_request("hspec-fancy", "A,B")))
        assert registry.calls == []

    @pytest.mark.asyncio
    async def test_shared_sources_looked_up_once(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        sets = _sets(
            _registry_request("hspec-fancy", "Formatters.progress", namespace="hspec"),
            _registry_request("hspec-fancy", "Formatters.progress", namespace="sydtest"),
        )

        first = await resolver.resolve(sets)
        second = await resolver.resolve(sets)

        assert registry.calls == ["hspec-fancy"]
        assert first.packages() == second.packages()

    @pytest.mark.asyncio
    async def test_result_memoized_per_plugin_sets(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        request = _registry_request("hspec-fancy", "Formatters.progress")

        first = await resolver.resolve(_sets(request))
        again = await resolver.resolve(_sets(request))
        other = await resolver.resolve(_sets(_registry_request("hspec-foo", "Foo.plugin")))

        assert again is first
        assert other is not first
        assert registry.calls == ["hspec-fancy", "hspec-foo"]

    @pytest.mark.asyncio
    async def test_failure_cancels_outstanding_lookups(self, registry):
        cancelled = asyncio.Event()

        class HangingSourceControl:
            async def commit_for(self, repository, ref):
                if ref == "broken":
                    raise LookupFailed("revision 'broken' not found")
                try:
                    await asyncio.sleep(3600)
                except asyncio.CancelledError:
                    cancelled.set()
                    raise
                return "c" * 40

        resolver = Resolver(registry, HangingSourceControl(), max_workers=4)
        sets = _sets(
            _git_request("slow", "someone/slow", "main", "Slow.plugin"),
            _git_request("broken", "someone/broken", "broken", "Broken.plugin"),
        )

        with pytest.raises(ResolutionError, match="broken"):
            await asyncio.wait_for(resolver.resolve(sets), timeout=5)
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, registry):
        active = 0
        peak = 0

        class CountingSourceControl:
            async def commit_for(self, repository, ref):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1
                return "d" * 40

        resolver = Resolver(registry, CountingSourceControl(), max_workers=2)
        sets = _sets(*[_git_request(f"p{i}", f"someone/p{i}", "main", f"P{i}.plugin") for i in range(6)])

        resolved = await resolver.resolve(sets)

        assert len(resolved["hspec"]) == 6
        assert peak == 2

    def test_invalid_worker_count(self, registry, source_control):
        with pytest.raises(ValueError):
            Resolver(registry, source_control, max_workers=0)


class TestResolvePluginSets:
    def test_empty_sets_need_no_network(self):
        assert resolve_plugin_sets(_sets(), PluginSettings()) == ResolvedPlugins()

    def test_uses_given_resolver(self, registry, source_control):
        resolver = Resolver(registry, source_control)
        resolved = resolve_plugin_sets(
            _sets(_registry_request("hspec-foo", "Foo.plugin")), PluginSettings(), resolver=resolver
        )
        assert resolved["hspec"][0].version == "0.1.0"
