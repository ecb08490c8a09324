"""Pytest configuration and shared fixtures."""

import asyncio
from pathlib import Path

import pytest
import yaml

from haskell_plugins.config.schema import PluginSettings
from haskell_plugins.resolver.base import LookupFailed


class FakeRegistry:
    """In-memory registry: package name -> versions."""

    def __init__(self, packages: dict[str, list[str]] | None = None):
        self.packages = packages or {}
        self.calls: list[str] = []

    async def versions(self, package: str) -> list[str]:
        self.calls.append(package)
        if package not in self.packages:
            raise LookupFailed(f"package '{package}' not found")
        return list(self.packages[package])


class FakeSourceControl:
    """In-memory source-control host: (repository, ref) -> commit."""

    def __init__(self, commits: dict[tuple[str, str], str] | None = None):
        self.commits = commits or {}
        self.calls: list[tuple[str, str]] = []

    async def commit_for(self, repository: str, ref: str) -> str:
        self.calls.append((repository, ref))
        await asyncio.sleep(0)
        if (repository, ref) not in self.commits:
            raise LookupFailed(f"revision '{ref}' not found in {repository}")
        return self.commits[(repository, ref)]


@pytest.fixture
def settings(tmp_path: Path) -> PluginSettings:
    """Settings pointing the user-global file into a temporary home."""
    return PluginSettings(user_config_path=tmp_path / "home" / ".haskell-plugins" / "plugins.yaml")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An empty project directory."""
    path = tmp_path / "work" / "my-project"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def write_yaml():
    """Write a YAML document, creating parent directories."""

    def _write(path: Path, data) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return _write


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry(
        {
            "hspec-fancy": ["0.1.0", "0.2.0", "0.2.1", "1.0.0"],
            "hspec-foo": ["0.1.0"],
            "criterion-report": ["2.0", "2.1"],
        }
    )


@pytest.fixture
def source_control() -> FakeSourceControl:
    return FakeSourceControl(
        {
            ("someone/hspec-git", "v1.0"): "a" * 40,
            ("someone/hspec-git", "3f2a9c1"): "3f2a9c1" + "0" * 33,
        }
    )
