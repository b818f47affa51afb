"""Configuration management for linkimport."""

from __future__ import annotations

import os
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import (
    CLIOptions,
    ImportSettings,
    LinkImportConfig,
    LoggingSettings,
    StoreSettings,
)
from .resolver import (
    ENV_PREFIX,
    flatten_for_env,
    overrides_from_env,
    resolve_with_precedence,
    set_dotted,
)

DEFAULT_CONFIG_PATH = Path("~/.linkimport/config.yaml")
_HEADER = "# linkimport configuration file; change values with `linkimport config set`.\n"


class ConfigManager:
    """Own the YAML settings file and resolve the effective configuration.

    The file only stores the values a user changed; defaults come from the
    models. Environment variables are read from ``env`` (``os.environ`` by
    default) at load time.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._path = (path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env

    @property
    def path(self) -> Path:
        """Return the settings file location."""
        return self._path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        use_env: bool = True,
    ) -> LinkImportConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted keys supplied on the command line.
            use_env: Whether ``LINKIMPORT__`` variables take part.

        Raises:
            ConfigError: If the file is malformed or a value fails validation.
        """
        env = self._env if self._env is not None else os.environ
        return resolve_with_precedence(
            self.read_overrides(),
            overrides_from_env(env) if use_env else None,
            cli_overrides,
        )

    def read_overrides(self) -> dict[str, Any]:
        """Return the values stored in the settings file; empty when it is absent."""
        if not self._path.exists():
            return {}
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {self._path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self._path} must contain a mapping at the top level.")
        return data

    def set_value(self, key: str, raw_value: str) -> LinkImportConfig:
        """Persist ``key = raw_value`` after validating the result.

        Args:
            key: Dotted setting name such as ``importer.dedup_policy``.
            raw_value: YAML scalar or collection text.

        Returns:
            LinkImportConfig: Configuration as resolved from the updated file.

        Raises:
            ConfigError: If the value cannot be parsed, assigned, or validated.
        """
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Unable to parse value for {key}: {exc}") from exc

        data = self.read_overrides()
        original = deepcopy(data)
        set_dotted(data, key, value)
        resolved = resolve_with_precedence(data)
        if data != original or not self._path.exists():
            self._write(data)
        return resolved

    def _write(self, data: Mapping[str, Any]) -> None:
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=True) if data else ""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(f"{_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8")


__all__ = [
    "CLIOptions",
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "ImportSettings",
    "LinkImportConfig",
    "LoggingSettings",
    "StoreSettings",
    "flatten_for_env",
    "overrides_from_env",
    "resolve_with_precedence",
    "set_dotted",
]
