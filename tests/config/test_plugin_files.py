"""Tests for loading layered plugin-request files."""

import os
from pathlib import Path

import pytest

from haskell_plugins.config.loader import (
    PROJECT_LAYER,
    USER_LAYER,
    discover_layers,
    find_project_files,
    load_layer,
    load_settings,
    parse_requests,
)
from haskell_plugins.config.schema import PluginEntry, PluginSettings
from haskell_plugins.errors import ConfigError
from haskell_plugins.models import GitSource, RegistrySource


class TestPluginEntry:
    def test_registry_entry(self):
        entry = PluginEntry(name="hspec-fancy", plugin="Formatters.progress")
        assert entry.github is None
        assert entry.version is None

    def test_git_entry_requires_ref(self):
        with pytest.raises(ValueError, match="ref"):
            PluginEntry(name="x", plugin="X.plugin", github="someone/x")

    def test_ref_requires_github(self):
        with pytest.raises(ValueError, match="github"):
            PluginEntry(name="x", plugin="X.plugin", ref="abc")

    def test_version_not_allowed_with_github(self):
        with pytest.raises(ValueError):
            PluginEntry(name="x", plugin="X.plugin", github="someone/x", ref="abc", version=">=1")

    def test_invalid_repository(self):
        with pytest.raises(ValueError, match="owner/repo"):
            PluginEntry(name="x", plugin="X.plugin", github="not a repo", ref="abc")

    def test_invalid_version_range(self):
        with pytest.raises(ValueError):
            PluginEntry(name="x", plugin="X.plugin", version=">= banana")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            PluginEntry(name="x", plugin="X.plugin", branch="main")

    def test_blank_entry_point_rejected(self):
        with pytest.raises(ValueError):
            PluginEntry(name="x", plugin="   ")


class TestLoadLayer:
    def test_missing_file_is_empty_layer(self, tmp_path: Path):
        layer = load_layer(tmp_path / "nope.yaml", USER_LAYER)
        assert layer.is_empty
        assert layer.name == USER_LAYER

    def test_empty_file_is_empty_layer(self, tmp_path: Path):
        path = tmp_path / "plugins.yaml"
        path.write_text("")
        assert load_layer(path, USER_LAYER).is_empty

    def test_loads_requests_in_file_order(self, tmp_path: Path, write_yaml):
        path = write_yaml(
            tmp_path / "plugins.yaml",
            {
                "hspec": [
                    {"name": "hspec-fancy", "plugin": "Formatters.progress"},
                    {
                        "name": "hspec-git",
                        "github": "someone/hspec-git",
                        "ref": "v1.0",
                        "plugin": "Git.plugin",
                    },
                ],
                "criterion": [
                    {
                        "name": "report",
                        "package": "criterion-report",
                        "version": "^>=2.0",
                        "plugin": "Report.html",
                    }
                ],
            },
        )

        layer = load_layer(path, PROJECT_LAYER)

        assert layer.path == path
        assert [r.display_name for r in layer.requests] == ["hspec-fancy", "hspec-git", "report"]
        fancy, git, report = layer.requests
        assert fancy.source == RegistrySource(package="hspec-fancy")
        assert fancy.entry_point == "Formatters.progress"
        assert fancy.layer == PROJECT_LAYER
        assert git.source == GitSource(repository="someone/hspec-git", ref="v1.0", package="hspec-git")
        assert report.namespace == "criterion"
        assert report.source == RegistrySource(package="criterion-report", constraint="^>=2.0")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "plugins.yaml"
        path.write_text("hspec: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML") as exc_info:
            load_layer(path, USER_LAYER)
        assert exc_info.value.path == path

    def test_missing_field_rejects_whole_file(self, tmp_path: Path, write_yaml):
        path = write_yaml(
            tmp_path / "plugins.yaml",
            {
                "hspec": [
                    {"name": "good", "plugin": "Good.plugin"},
                    {"name": "bad"},
                ]
            },
        )
        with pytest.raises(ConfigError) as exc_info:
            load_layer(path, USER_LAYER)

        message = str(exc_info.value)
        assert str(path) in message
        assert "hspec/bad" in message
        assert "plugin" in message
        assert exc_info.value.entry == "hspec/bad"

    def test_top_level_must_be_mapping(self, tmp_path: Path):
        path = tmp_path / "plugins.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_layer(path, USER_LAYER)

    def test_namespace_must_be_list(self, tmp_path: Path, write_yaml):
        path = write_yaml(tmp_path / "plugins.yaml", {"hspec": {"name": "x", "plugin": "X"}})
        with pytest.raises(ConfigError, match="list"):
            load_layer(path, USER_LAYER)

    def test_entry_must_be_mapping(self, tmp_path: Path, write_yaml):
        path = write_yaml(tmp_path / "plugins.yaml", {"hspec": ["Formatters.progress"]})
        with pytest.raises(ConfigError, match=r"hspec\[0\]"):
            load_layer(path, USER_LAYER)

    def test_invalid_namespace(self, tmp_path: Path, write_yaml):
        path = write_yaml(tmp_path / "plugins.yaml", {"has space": []})
        with pytest.raises(ConfigError, match="namespace"):
            load_layer(path, USER_LAYER)

    def test_null_namespace_is_empty(self):
        assert parse_requests({"hspec": None}, USER_LAYER) == []

    def test_unquoted_numeric_ref(self, tmp_path: Path):
        path = tmp_path / "plugins.yaml"
        path.write_text(
            "hspec:\n"
            "  - name: hspec-git\n"
            "    github: someone/hspec-git\n"
            "    ref: 1234567\n"
            "    plugin: Git.plugin\n"
        )

        (git,) = load_layer(path, USER_LAYER).requests

        assert git.source == GitSource(repository="someone/hspec-git", ref="1234567", package="hspec-git")

    def test_unquoted_numeric_version_reports_range(self, tmp_path: Path):
        path = tmp_path / "plugins.yaml"
        path.write_text("hspec:\n  - name: hspec-fancy\n    version: 1\n    plugin: X.plugin\n")
        with pytest.raises(ConfigError, match="Invalid version range '1'"):
            load_layer(path, USER_LAYER)

    def test_unquoted_float_version_rejected(self, tmp_path: Path):
        path = tmp_path / "plugins.yaml"
        path.write_text("hspec:\n  - name: hspec-fancy\n    version: 1.10\n    plugin: X.plugin\n")
        with pytest.raises(ConfigError, match="quote it"):
            load_layer(path, USER_LAYER)


class TestDiscoverLayers:
    def test_no_files(self, settings: PluginSettings, project_dir: Path):
        layers = discover_layers(project_dir, settings)
        assert [layer.name for layer in layers] == [USER_LAYER, PROJECT_LAYER]
        assert all(layer.is_empty for layer in layers)

    def test_user_then_project(self, settings: PluginSettings, project_dir: Path, write_yaml):
        write_yaml(settings.user_config_path, {"hspec": [{"name": "a", "plugin": "A"}]})
        write_yaml(project_dir / ".haskell-plugins.yaml", {"hspec": [{"name": "b", "plugin": "B"}]})

        layers = discover_layers(project_dir, settings)

        assert [layer.name for layer in layers] == [USER_LAYER, PROJECT_LAYER]
        assert layers[0].requests[0].display_name == "a"
        assert layers[1].requests[0].display_name == "b"

    def test_nearest_ancestor_has_highest_precedence(
        self, settings: PluginSettings, project_dir: Path, write_yaml
    ):
        outer = write_yaml(project_dir.parent / ".haskell-plugins.yaml", {"hspec": []})
        inner = write_yaml(project_dir / ".haskell-plugins.yaml", {"hspec": []})

        layers = discover_layers(project_dir, settings)

        assert [layer.path for layer in layers[1:]] == [outer.resolve(), inner.resolve()]
        assert layers[-1].name == PROJECT_LAYER
        assert layers[-2].name == f"{PROJECT_LAYER}:1"

    def test_search_starts_in_subdirectory(
        self, settings: PluginSettings, project_dir: Path, write_yaml
    ):
        found = write_yaml(project_dir / ".haskell-plugins.yaml", {})
        nested = project_dir / "test" / "unit"
        nested.mkdir(parents=True)
        assert find_project_files(nested, ".haskell-plugins.yaml")[-1] == found.resolve()

    def test_malformed_project_file_raises(
        self, settings: PluginSettings, project_dir: Path
    ):
        (project_dir / ".haskell-plugins.yaml").write_text("hspec: [")
        with pytest.raises(ConfigError):
            discover_layers(project_dir, settings)


class TestLoadSettings:
    @pytest.fixture(autouse=True)
    def clean_environment(self, monkeypatch):
        for key in [k for k in os.environ if k.startswith("HSPLUGINS_") or k == "GITHUB_TOKEN"]:
            monkeypatch.delenv(key)

    def test_defaults(self):
        settings = load_settings()
        assert settings.hackage_url == "https://hackage.haskell.org"
        assert settings.max_workers == 4
        assert settings.github_token is None

    def test_environment_overrides(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("HSPLUGINS_USER_CONFIG", str(tmp_path / "p.yaml"))
        monkeypatch.setenv("HSPLUGINS_MAX_WORKERS", "8")
        monkeypatch.setenv("HSPLUGINS_HACKAGE_URL", "http://mirror.local")
        monkeypatch.setenv("GITHUB_TOKEN", "secret")

        settings = load_settings()

        assert settings.user_config_path == tmp_path / "p.yaml"
        assert settings.max_workers == 8
        assert settings.hackage_url == "http://mirror.local"
        assert settings.github_token == "secret"

    def test_prefixed_token_wins(self, monkeypatch):
        monkeypatch.setenv("HSPLUGINS_GITHUB_TOKEN", "tool-token")
        monkeypatch.setenv("GITHUB_TOKEN", "shell-token")
        assert load_settings().github_token == "tool-token"

    def test_empty_variable_keeps_default(self, monkeypatch):
        monkeypatch.setenv("HSPLUGINS_TIMEOUT", "")
        assert load_settings().timeout == 30.0

    def test_keyword_overrides(self, tmp_path: Path):
        settings = load_settings(user_config_path=tmp_path / "p.yaml", max_workers=2)
        assert settings.user_config_path == tmp_path / "p.yaml"
        assert settings.max_workers == 2

    def test_user_path_expanded(self):
        settings = load_settings(user_config_path="~/plugins.yaml")
        assert settings.user_config_path == Path.home() / "plugins.yaml"

    def test_invalid_override(self, monkeypatch):
        monkeypatch.setenv("HSPLUGINS_MAX_WORKERS", "zero")
        with pytest.raises(ConfigError, match="HSPLUGINS_"):
            load_settings()
