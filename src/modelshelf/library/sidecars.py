"""Naming rules for model files and their JSON metadata sidecars."""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)

METADATA_SUFFIX = "-munchie.json"
STL_METADATA_SUFFIX = "-stl-munchie.json"

# Primary model extensions mapped to the suffix of their paired sidecar.
PRIMARY_EXTENSIONS: dict[str, str] = {
    ".3mf": METADATA_SUFFIX,
    ".stl": STL_METADATA_SUFFIX,
}

_GCODE_SUFFIXES = (".gcode.3mf", ".3mf.gcode")


def is_metadata_file(name: str) -> bool:
    """Return whether ``name`` follows either sidecar naming convention."""
    return name.lower().endswith(METADATA_SUFFIX)


def is_primary_model(name: str) -> bool:
    """Return whether ``name`` is a primary model binary."""
    lowered = name.lower()
    if lowered.endswith(_GCODE_SUFFIXES):
        return False
    return any(lowered.endswith(extension) for extension in PRIMARY_EXTENSIONS)


def is_gcode_archive(name: str) -> bool:
    """Return whether ``name`` is a sliced G-code archive rather than a model."""
    return name.lower().endswith(_GCODE_SUFFIXES)


def companion_metadata_path(model_path: Path) -> Path:
    """Return the sidecar path paired with a primary model file.

    Args:
        model_path: Path to a ``.3mf`` or ``.stl`` file.

    Returns:
        Path: ``<base>-munchie.json`` or ``<base>-stl-munchie.json`` next to it.

    Raises:
        ValueError: If ``model_path`` is not a primary model file.
    """
    suffix = model_path.suffix.lower()
    sidecar_suffix = PRIMARY_EXTENSIONS.get(suffix)
    if sidecar_suffix is None:
        raise ValueError(f"Not a primary model file: {model_path}")
    return model_path.with_name(model_path.name[: -len(suffix)] + sidecar_suffix)


def protect_model_write(target: Path) -> Path:
    """Remap a write aimed at a primary model binary onto its sidecar.

    Every metadata write passes through here so restores and reconciliation can
    never overwrite a ``.3mf`` or ``.stl`` asset.

    Args:
        target: Intended write destination.

    Returns:
        Path: ``target`` itself, or its companion sidecar when it names a model.
    """
    if target.suffix.lower() not in PRIMARY_EXTENSIONS:
        return target
    mapped = companion_metadata_path(target)
    LOGGER.warning("Refusing to write model file %s; writing %s instead", target, mapped)
    return mapped


__all__ = [
    "METADATA_SUFFIX",
    "PRIMARY_EXTENSIONS",
    "STL_METADATA_SUFFIX",
    "companion_metadata_path",
    "is_gcode_archive",
    "is_metadata_file",
    "is_primary_model",
    "protect_model_write",
]
