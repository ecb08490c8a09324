"""Encoding of resolved plugins into process environment variables.

Wire format, read by consumer tools::

    HASKELL_PLUGINS_<NAMESPACE>=<entry point>,<entry point>,...

``<NAMESPACE>`` is the namespace upper-cased with ``-`` and ``.`` replaced by
``_``. Entry points appear in the order their display names were first seen
across configuration layers. A namespace without plugins has no variable at
all; consumers must treat a missing variable as "no plugins".
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Optional

from haskell_plugins.errors import EncodingError

if TYPE_CHECKING:
    from haskell_plugins.merge import PluginSets
    from haskell_plugins.mode import Eligibility
    from haskell_plugins.resolver.resolver import ResolvedPlugins

logger = logging.getLogger(__name__)

ENV_PREFIX = "HASKELL_PLUGINS_"
DELIMITER = ","

_FORBIDDEN = (DELIMITER, "\0", "\n", "\r")

EMPTY_ENCODING: Mapping[str, str] = MappingProxyType({})


def variable_name(namespace: str) -> str:
    """Environment variable carrying the plugins of ``namespace``."""
    return ENV_PREFIX + namespace.upper().replace("-", "_").replace(".", "_")


def check_encodable(plugin_sets: PluginSets) -> None:
    """Reject values the encoding cannot carry unambiguously.

    Raises:
        EncodingError: If an entry point contains the delimiter or a control
            character, or two namespaces share a variable name
    """
    owners: dict[str, str] = {}
    for namespace, plugin_set in plugin_sets.items():
        name = variable_name(namespace)
        if name in owners and owners[name] != namespace:
            raise EncodingError(
                f"Namespaces '{owners[name]}' and '{namespace}' both map to {name}"
            )
        owners[name] = namespace

        for request in plugin_set.requests():
            bad = [c for c in _FORBIDDEN if c in request.entry_point]
            if bad:
                raise EncodingError(
                    f"Entry point {request.entry_point!r} contains {bad[0]!r}, "
                    f"which cannot appear in {name}",
                    entry=f"{namespace}/{request.display_name}",
                )


def encode_environment(
    plugin_sets: PluginSets,
    resolved: ResolvedPlugins,
    eligibility: Eligibility,
) -> Mapping[str, str]:
    """Build the plugin environment variables for one invocation.

    Args:
        plugin_sets: Merged plugin sets, which fix the order
        resolved: Resolution results, which supply the entry points
        eligibility: Decision from :func:`haskell_plugins.mode.classify`

    Returns:
        Read-only mapping of variable name to value; empty when ineligible

    Raises:
        EncodingError: If a value cannot be encoded or a request was not resolved
    """
    if not eligibility:
        return EMPTY_ENCODING

    check_encodable(plugin_sets)

    encoding: dict[str, str] = {}
    for namespace, plugin_set in plugin_sets.items():
        entry_points = []
        for display_name in plugin_set:
            package = resolved.find(namespace, display_name)
            if package is None:
                raise EncodingError(
                    "Plugin was not resolved", entry=f"{namespace}/{display_name}"
                )
            entry_points.append(package.entry_point)
        if entry_points:
            encoding[variable_name(namespace)] = DELIMITER.join(entry_points)

    for name, value in encoding.items():
        logger.info("%s=%s", name, value)
    return MappingProxyType(encoding)


def decode_value(value: Optional[str]) -> list[str]:
    """Split a variable value back into entry points, as a consumer would."""
    if not value:
        return []
    return value.split(DELIMITER)


def launch_environment(base: Mapping[str, str], encoding: Mapping[str, str]) -> dict[str, str]:
    """Environment for a child process.

    Plugin variables inherited from ``base`` are dropped so that only this
    invocation's decision reaches the child.
    """
    env = {key: value for key, value in base.items() if not key.startswith(ENV_PREFIX)}
    env.update(encoding)
    return env


def render_exports(encoding: Mapping[str, str]) -> str:
    """Render the encoding as POSIX shell ``export`` lines."""
    return "\n".join(f"export {name}={shlex.quote(value)}" for name, value in encoding.items())
