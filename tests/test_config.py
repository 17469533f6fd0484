"""Tests for the persisted configuration store."""

import json
from pathlib import Path

import pytest

from ai_shell.config import DEFAULTS, ConfigError, ConfigStore, default_config_path
from ai_shell.state import ShellState


class TestConfigStore:
    """Verify reading and writing settings."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        """A missing file yields the defaults."""
        assert ConfigStore(tmp_path / "config.json").get() == DEFAULTS

    def test_set_and_get(self, tmp_path: Path) -> None:
        """A stored value is read back and persisted as JSON."""
        path = tmp_path / "nested" / "config.json"
        store = ConfigStore(path)
        store.set("model", "gemini-pro")
        assert store.get()["model"] == "gemini-pro"
        assert json.loads(path.read_text())["model"] == "gemini-pro"

    def test_unknown_key(self, tmp_path: Path) -> None:
        """Only known keys can be set."""
        store = ConfigStore(tmp_path / "config.json")
        with pytest.raises(ConfigError, match="cannot be configured"):
            store.set("api_key", "secret")
        assert not store.path.exists()

    def test_corrupt_file(self, tmp_path: Path) -> None:
        """Unparseable JSON falls back to the defaults."""
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert ConfigStore(path).get() == DEFAULTS

    def test_non_object_file(self, tmp_path: Path) -> None:
        """A JSON value that is not an object is ignored."""
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        assert ConfigStore(path).get() == DEFAULTS

    def test_unwritable(self, tmp_path: Path) -> None:
        """A write failure becomes a ConfigError."""
        blocker = tmp_path / "file.txt"
        blocker.write_text("")
        store = ConfigStore(blocker / "config.json")
        with pytest.raises(ConfigError, match="cannot write"):
            store.set("model", "gemini-pro")


class TestConfigPath:
    """Verify where the store lives."""

    def test_default_location(self) -> None:
        """Without an override the file is under the home directory."""
        assert default_config_path({}) == Path.home() / ".ai-shell" / "config.json"

    def test_override(self, tmp_path: Path) -> None:
        """``AI_SHELL_CONFIG`` overrides the location."""
        target = tmp_path / "cfg.json"
        assert default_config_path({"AI_SHELL_CONFIG": str(target)}) == target

    def test_state_uses_environment(self, tmp_path: Path) -> None:
        """A session built from the environment picks up the override."""
        target = tmp_path / "cfg.json"
        state = ShellState.from_environ({"AI_SHELL_CONFIG": str(target)})
        assert state.config is not None
        assert state.config.path == target
