"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import ModelshelfConfig

ENV_PREFIX = "MODELSHELF__"


def resolve_with_precedence(
    *,
    defaults: ModelshelfConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ModelshelfConfig:
    """Layer override sources over the defaults: file, then environment, then CLI.

    Keys may be nested mappings or dotted paths (``"scan.auto_tag"``).

    Raises:
        ConfigError: If a source is malformed or the merged values fail validation.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    for name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        if not isinstance(source, MappingABC):
            raise ConfigError(f"{name.capitalize()} overrides must be a mapping.")
        merged = _deep_merge(merged, expand_dotted(source, source_name=name))

    try:
        return ModelshelfConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``MODELSHELF__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML scalars so ``true`` and ``5`` keep their types.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value: Any = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        _set_path(overrides, segments, value, source_name="environment")
    return overrides


def flatten_for_env(config: ModelshelfConfig) -> Dict[str, str]:
    """Render the config as the environment variables that would reproduce it."""
    flat: Dict[str, str] = {}
    pending: list[tuple[list[str], Any]] = [([key], value) for key, value in config.model_dump(mode="json").items()]
    while pending:
        prefix, value = pending.pop()
        if isinstance(value, dict):
            pending.extend((prefix + [str(key)], child) for key, child in value.items())
            continue
        env_key = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, list):
            flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[env_key] = "null" if value is None else str(value)
    return dict(sorted(flat.items()))


def resolve_library_paths(config: ModelshelfConfig, base: Path) -> ModelshelfConfig:
    """Return a copy of ``config`` with relative library paths anchored at ``base``."""
    library = config.library
    models_dir = library.models_dir.expanduser()
    collections_file = library.collections_file.expanduser()
    return config.model_copy(
        update={
            "library": library.model_copy(
                update={
                    "models_dir": models_dir if models_dir.is_absolute() else base / models_dir,
                    "collections_file": collections_file if collections_file.is_absolute() else base / collections_file,
                }
            )
        }
    )


def expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Turn dotted keys into nested mappings, recursing into mapping values."""
    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, source_name=source_name)
        _set_path(result, key.split("."), value, source_name=source_name)
    return result


def _set_path(target: dict[str, Any], path: list[str], value: Any, *, source_name: str) -> None:
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{source_name.capitalize()} override for {'.'.join(path)} conflicts with existing value."
            )
        node = child
    leaf = path[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        node[leaf] = _deep_merge(node[leaf], value)
    else:
        node[leaf] = value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "expand_dotted",
    "flatten_for_env",
    "parse_env_overrides",
    "resolve_library_paths",
    "resolve_with_precedence",
]
