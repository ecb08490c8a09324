"""Exception types for plugin coordination.

Every error is fatal to plugin injection for the current invocation. None of
them is raised when no plugins were requested.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from haskell_plugins.models import PluginRequest


class PluginError(Exception):
    """Base class for plugin coordination errors."""


class ConfigError(PluginError):
    """Malformed or ambiguous plugin configuration.

    Raised for a whole file; a file is never partially loaded.
    """

    def __init__(self, message: str, path: Path | None = None, entry: str | None = None):
        self.path = path
        self.entry = entry
        location = ""
        if path is not None:
            location = f"{path}: "
        if entry is not None:
            location += f"entry '{entry}': "
        super().__init__(f"{location}{message}")


class EncodingError(ConfigError):
    """An entry point or namespace cannot be represented in the environment encoding."""


class ResolutionError(PluginError):
    """A requested plugin package or revision could not be located."""

    def __init__(self, request: PluginRequest, reason: str):
        self.request = request
        self.reason = reason
        super().__init__(
            f"Cannot resolve plugin '{request.display_name}' "
            f"(namespace '{request.namespace}', {request.source.describe()}): {reason}"
        )
