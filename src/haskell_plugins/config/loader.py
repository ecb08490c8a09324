"""Discovery and loading of layered plugin-request files."""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from haskell_plugins.config.schema import NAMESPACE_PATTERN, PluginEntry, PluginSettings
from haskell_plugins.errors import ConfigError
from haskell_plugins.models import ConfigLayer, GitSource, PluginRequest, RegistrySource

logger = logging.getLogger(__name__)

USER_LAYER = "user-global"
PROJECT_LAYER = "project-local"


def load_settings(**overrides: Any) -> PluginSettings:
    """Build settings from defaults, ``HSPLUGINS_*`` environment variables and ``overrides``.

    Raises:
        ConfigError: If a setting has an invalid value
    """
    try:
        return PluginSettings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid HSPLUGINS_* setting: {_describe_validation(e)}") from e


def find_project_files(start: Path, file_name: str) -> list[Path]:
    """Find project-local files from ``start`` up to the filesystem root.

    Returns:
        Existing files ordered farthest ancestor first, nearest last
    """
    found = []
    directory = start.expanduser().resolve()
    for candidate_dir in [directory, *directory.parents]:
        candidate = candidate_dir / file_name
        if candidate.is_file():
            found.append(candidate)
    found.reverse()
    return found


def discover_layers(
    project_dir: Path, settings: Optional[PluginSettings] = None
) -> list[ConfigLayer]:
    """Load every configuration layer for a project, lowest precedence first.

    The user-global file comes first, followed by project-local files from
    the farthest ancestor directory to the project directory itself.

    Args:
        project_dir: Directory of the top-level package
        settings: Tool settings, defaults if None

    Returns:
        Ordered configuration layers (missing files give empty layers)

    Raises:
        ConfigError: If any file exists but is malformed
    """
    if settings is None:
        settings = PluginSettings()

    user_path = settings.user_config_path.expanduser()
    layers = [load_layer(user_path, USER_LAYER)]

    project_files = find_project_files(project_dir, settings.project_file_name)
    if not project_files:
        layers.append(ConfigLayer(name=PROJECT_LAYER))
    for depth, path in enumerate(project_files):
        # Nearest file keeps the plain name, ancestors are numbered by distance
        distance = len(project_files) - 1 - depth
        name = PROJECT_LAYER if distance == 0 else f"{PROJECT_LAYER}:{distance}"
        if path.resolve() == user_path.resolve():
            continue
        layers.append(load_layer(path, name))

    logger.debug(
        "Discovered %d configuration layers (%d requests)",
        len(layers),
        sum(len(layer.requests) for layer in layers),
    )
    return layers


def load_layer(path: Path, name: str) -> ConfigLayer:
    """Load a single plugin-request file into a layer.

    Args:
        path: File to read
        name: Layer name used in messages

    Returns:
        The layer; empty if the file does not exist or is empty

    Raises:
        ConfigError: If the file is malformed; no partial layer is returned
    """
    if not path.exists():
        logger.debug("No plugin file at %s", path)
        return ConfigLayer(name=name, path=path)

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", path=path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read file: {e}", path=path) from e

    if data is None:
        return ConfigLayer(name=name, path=path)

    requests = tuple(parse_requests(data, name, path))
    logger.info("Loaded %d plugin requests from %s (%s)", len(requests), path, name)
    return ConfigLayer(name=name, path=path, requests=requests)


def parse_requests(data: Any, layer: str, path: Optional[Path] = None) -> list[PluginRequest]:
    """Convert the parsed YAML document of one file into plugin requests.

    Raises:
        ConfigError: On the first invalid namespace or entry
    """
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a mapping of namespace to plugin list, got {type(data).__name__}",
            path=path,
        )

    requests = []
    for namespace, entries in data.items():
        if not isinstance(namespace, str) or not NAMESPACE_PATTERN.match(namespace):
            raise ConfigError(f"Invalid namespace identifier {namespace!r}", path=path)
        if entries is None:
            continue
        if not isinstance(entries, list):
            raise ConfigError(
                f"Namespace '{namespace}' must be a list of plugin entries",
                path=path,
            )

        for index, raw in enumerate(entries):
            label = f"{namespace}[{index}]"
            if isinstance(raw, dict) and isinstance(raw.get("name"), str):
                label = f"{namespace}/{raw['name']}"
            if not isinstance(raw, dict):
                raise ConfigError("Plugin entry must be a mapping", path=path, entry=label)
            try:
                entry = PluginEntry(**raw)
            except ValidationError as e:
                raise ConfigError(_describe_validation(e), path=path, entry=label) from e
            except TypeError as e:
                raise ConfigError(f"Invalid field names: {e}", path=path, entry=label) from e

            requests.append(_to_request(namespace, entry, layer))

    return requests


def _to_request(namespace: str, entry: PluginEntry, layer: str) -> PluginRequest:
    source: Any
    if entry.github is not None:
        source = GitSource(
            repository=entry.github,
            ref=entry.ref or "",
            package=entry.package or entry.name,
        )
    else:
        source = RegistrySource(package=entry.package or entry.name, constraint=entry.version)
    return PluginRequest(
        namespace=namespace,
        display_name=entry.name,
        source=source,
        entry_point=entry.plugin,
        layer=layer,
    )


def _describe_validation(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        field = ".".join(str(loc) for loc in detail["loc"])
        if field:
            parts.append(f"{field}: {detail['msg']}")
        else:
            parts.append(detail["msg"])
    return "; ".join(parts)
