"""Configuration store — persisted user settings.

Settings live in a small JSON file (``~/.ai-shell/config.json`` unless
``$AI_SHELL_CONFIG`` points elsewhere).  Only non-secret settings are
stored; today that is just the AI ``model``.

Reading never fails: a missing or corrupt file yields the defaults,
merged under whatever valid keys the file does contain.
"""

import json
from pathlib import Path
from typing import Any

DEFAULTS: dict[str, str] = {"model": "gemini-1.5-flash-latest"}

# Keys that ``set`` accepts.
SETTABLE_KEYS: frozenset[str] = frozenset(["model"])


class ConfigError(Exception):
    """Raise when a setting cannot be read or written."""


def default_config_path(env: dict[str, str]) -> Path:
    """Return the config file location for the given environment."""
    override = env.get("AI_SHELL_CONFIG")
    if override:
        return Path(override)
    return Path.home() / ".ai-shell" / "config.json"


class ConfigStore:
    """JSON-file backed key/value settings."""

    def __init__(self, path: Path) -> None:
        """Create a store backed by *path* (created lazily on first ``set``)."""
        self._path = path

    @property
    def path(self) -> Path:
        """Return the backing file path."""
        return self._path

    def get(self) -> dict[str, str]:
        """Return the effective settings (defaults overlaid with the file)."""
        config = dict(DEFAULTS)
        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return config
        if isinstance(data, dict):
            config.update({str(k): str(v) for k, v in data.items()})
        return config

    def set(self, key: str, value: str) -> None:
        """Persist ``key = value``.

        Raises:
            ConfigError: If *key* is not settable or the file cannot be written.

        """
        if key not in SETTABLE_KEYS:
            allowed = ", ".join(sorted(SETTABLE_KEYS))
            msg = f"'{key}' cannot be configured (allowed: {allowed})"
            raise ConfigError(msg)
        config = self.get()
        config[key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        except OSError as e:
            msg = f"cannot write {self._path}: {e.strerror or e}"
            raise ConfigError(msg) from e
