"""Precedence merge of configuration layers into per-namespace plugin sets.

Layers are applied lowest precedence first. A later layer replaces an entry
with the same display name but the entry keeps the position where it was
first seen, so overriding never reorders the environment encoding.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from haskell_plugins.errors import ConfigError
from haskell_plugins.models import ConfigLayer, PluginRequest

logger = logging.getLogger(__name__)


class PluginSet(Mapping[str, PluginRequest]):
    """Ordered, read-only mapping of display name to request for one namespace."""

    def __init__(self, namespace: str, requests: Mapping[str, PluginRequest] | None = None):
        self.namespace = namespace
        self._requests: dict[str, PluginRequest] = dict(requests or {})

    def __getitem__(self, display_name: str) -> PluginRequest:
        return self._requests[display_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._requests)

    def __len__(self) -> int:
        return len(self._requests)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PluginSet):
            return NotImplemented
        # Order is part of the value
        return self.namespace == other.namespace and list(self._requests.items()) == list(
            other._requests.items()
        )

    def __hash__(self) -> int:
        return hash((self.namespace, tuple(self._requests.items())))

    def __repr__(self) -> str:
        return f"PluginSet({self.namespace!r}, {list(self._requests)!r})"

    def requests(self) -> list[PluginRequest]:
        """Requests in first-seen order."""
        return list(self._requests.values())

    def entry_points(self) -> list[str]:
        return [request.entry_point for request in self._requests.values()]

    def with_requests(self, requests: Iterable[PluginRequest]) -> PluginSet:
        """Return a new set with ``requests`` applied as a higher-precedence layer."""
        merged = dict(self._requests)
        for request in requests:
            if request.display_name in merged:
                previous = merged[request.display_name]
                if previous != request:
                    logger.info(
                        "Plugin '%s/%s' from %s overrides %s",
                        self.namespace,
                        request.display_name,
                        request.layer or "unnamed layer",
                        previous.layer or "unnamed layer",
                    )
            # Assigning to an existing key keeps its insertion position
            merged[request.display_name] = request
        return PluginSet(self.namespace, merged)


class PluginSets(Mapping[str, PluginSet]):
    """Merged plugin sets for every namespace, in first-seen namespace order."""

    def __init__(self, sets: Mapping[str, PluginSet] | None = None):
        self._sets: dict[str, PluginSet] = dict(sets or {})

    def __getitem__(self, namespace: str) -> PluginSet:
        return self._sets[namespace]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sets)

    def __len__(self) -> int:
        return len(self._sets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PluginSets):
            return NotImplemented
        return list(self._sets.items()) == list(other._sets.items())

    def __hash__(self) -> int:
        return hash(tuple(self._sets.items()))

    def __repr__(self) -> str:
        return f"PluginSets({list(self._sets.values())!r})"

    @property
    def is_empty(self) -> bool:
        return all(len(plugin_set) == 0 for plugin_set in self._sets.values())

    def requests(self) -> list[PluginRequest]:
        """All requests, namespace by namespace, in first-seen order."""
        return [request for plugin_set in self._sets.values() for request in plugin_set.requests()]

    def with_layer(self, layer: ConfigLayer) -> PluginSets:
        """Return new sets with ``layer`` applied on top.

        Raises:
            ConfigError: If the layer names the same plugin twice in one namespace
        """
        by_namespace = _group_layer(layer)
        merged = dict(self._sets)
        for namespace, requests in by_namespace.items():
            base = merged.get(namespace, PluginSet(namespace))
            merged[namespace] = base.with_requests(requests)
        return PluginSets(merged)


def merge_layers(layers: Iterable[ConfigLayer], base: PluginSets | None = None) -> PluginSets:
    """Merge layers, lowest precedence first, into per-namespace plugin sets.

    Args:
        layers: Configuration layers ordered by increasing precedence
        base: Previously merged sets to extend

    Returns:
        The merged plugin sets

    Raises:
        ConfigError: If a display name repeats within one layer and namespace
    """
    merged = base if base is not None else PluginSets()
    for layer in layers:
        merged = merged.with_layer(layer)
    return merged


def _group_layer(layer: ConfigLayer) -> dict[str, list[PluginRequest]]:
    grouped: dict[str, list[PluginRequest]] = {}
    seen: set[tuple[str, str]] = set()
    for request in layer.requests:
        key = (request.namespace, request.display_name)
        if key in seen:
            raise ConfigError(
                f"Plugin '{request.display_name}' is declared more than once "
                f"in namespace '{request.namespace}' of layer '{layer.name}'",
                path=layer.path,
                entry=f"{request.namespace}/{request.display_name}",
            )
        seen.add(key)
        grouped.setdefault(request.namespace, []).append(request)
    return grouped
