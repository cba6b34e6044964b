"""Configuration management for modelshelf."""

from __future__ import annotations

import os
import textwrap
from pathlib import Path
from typing import Any, Mapping

import yaml

from modelshelf.state.models import utcnow

from .exceptions import ConfigError
from .models import ModelshelfConfig
from .resolver import (
    ENV_PREFIX,
    expand_dotted,
    flatten_for_env,
    parse_env_overrides,
    resolve_library_paths,
    resolve_with_precedence,
)

DEFAULT_CONFIG_PATH = Path("~/.modelshelf/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # modelshelf configuration file
    # Managed by `modelshelf config set KEY --value VALUE`; hand edits are preserved.
    """
)


class ConfigManager:
    """Read and write the YAML configuration file and resolve effective settings."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> ModelshelfConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Highest-precedence overrides, dotted or nested keys.
            include_env: Whether ``MODELSHELF__*`` variables are applied.
            ensure_file: Whether to write a default file when none exists.
            env_overrides: Environment mapping to use instead of ``os.environ``.

        Raises:
            ConfigError: If the file or any override is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_data = None
        if include_env:
            env_data = parse_env_overrides(env_overrides if env_overrides is not None else self._env)

        return resolve_with_precedence(
            defaults=ModelshelfConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_data or None,
            cli_overrides=cli_overrides,
        )

    def set_value(self, key: str, value: Any) -> ModelshelfConfig:
        """Persist a single dotted ``key`` after validating the resulting config.

        Returns:
            ModelshelfConfig: The configuration as stored on disk (without env or CLI layers).

        Raises:
            ConfigError: If the key or value is rejected by validation.
        """
        stored = self._read_file()
        updated = expand_dotted({key: value}, source_name="cli")
        candidate = resolve_with_precedence(
            defaults=ModelshelfConfig(),
            file_overrides=stored,
            cli_overrides=updated,
        )
        self.save(candidate)
        return candidate

    def save(self, config: ModelshelfConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, ModelshelfConfig):
            data = config.model_dump(mode="json")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(ModelshelfConfig().model_dump(mode="json"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = utcnow().isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8")


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "ModelshelfConfig",
    "flatten_for_env",
    "resolve_library_paths",
    "resolve_with_precedence",
]
