"""Pydantic models for plugin-request files and tool settings."""

import re
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from haskell_plugins.resolver.versions import parse_range

NAMESPACE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]*$")
REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class PluginEntry(BaseModel):
    """A single plugin entry as written in a plugins YAML file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, description="Display name, unique within the namespace")
    plugin: str = Field(min_length=1, description="Entry point the consumer will reference")
    package: str | None = Field(
        default=None,
        min_length=1,
        description="Package name if different from the display name",
    )
    version: str | None = Field(
        default=None,
        min_length=1,
        description="Cabal version range for registry packages",
    )
    github: str | None = Field(default=None, description="GitHub repository as owner/repo")
    ref: str | None = Field(default=None, min_length=1, description="Pinned git revision")

    @field_validator("version", "ref", mode="before")
    @classmethod
    def _unquoted_number(cls, value: object) -> object:
        # YAML reads `ref: 1234567` and `version: 1` as ints
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, float):
            raise ValueError(f"unquoted number {value!r} is ambiguous, quote it as a string")
        return value

    @field_validator("name", "plugin", "package", "ref")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("version")
    @classmethod
    def _check_range(cls, value: str | None) -> str | None:
        if value is not None:
            parse_range(value)
        return value

    @field_validator("github")
    @classmethod
    def _check_repository(cls, value: str | None) -> str | None:
        if value is not None and not REPOSITORY_PATTERN.match(value):
            raise ValueError(f"expected 'owner/repo', got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_source(self) -> "PluginEntry":
        if self.github is not None and self.ref is None:
            raise ValueError("'github' requires a pinned 'ref'")
        if self.ref is not None and self.github is None:
            raise ValueError("'ref' is only valid together with 'github'")
        if self.github is not None and self.version is not None:
            raise ValueError("'version' cannot be combined with 'github'")
        return self


class PluginSettings(BaseSettings):
    """Settings for locating configuration and resolving plugins.

    Every field can be overridden with an ``HSPLUGINS_*`` environment
    variable. ``GITHUB_TOKEN`` is honoured for authenticated GitHub lookups.
    """

    model_config = SettingsConfigDict(
        env_prefix="HSPLUGINS_",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    user_config_path: Path = Field(
        default=Path.home() / ".haskell-plugins" / "plugins.yaml",
        validation_alias="HSPLUGINS_USER_CONFIG",
        description="User-global plugin-request file",
    )
    project_file_name: str = Field(
        default=".haskell-plugins.yaml",
        validation_alias="HSPLUGINS_PROJECT_FILE",
        description="File name searched for in the project directory and its ancestors",
    )
    hackage_url: str = Field(default="https://hackage.haskell.org", description="Hackage base URL")
    github_api_url: str = Field(default="https://api.github.com", description="GitHub API URL")
    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HSPLUGINS_GITHUB_TOKEN", "GITHUB_TOKEN"),
        description="Token for GitHub API requests",
    )
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds", gt=0)
    max_workers: int = Field(
        default=4,
        description="Maximum concurrent registry/VCS lookups",
        ge=1,
        le=32,
    )

    @field_validator("user_config_path")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()
