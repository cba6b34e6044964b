"""Bulk hash verification of model files against their sidecars."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Literal

from .detectors import HashComputer
from .discovery import iter_files, relative_posix
from .io import read_json
from .models import IntegrityEntry
from .sidecars import PRIMARY_EXTENSIONS, is_gcode_archive

LOGGER = logging.getLogger(__name__)

FileType = Literal["3mf", "stl"]


def check_integrity(
    models_dir: Path,
    file_type: FileType = "3mf",
    *,
    hasher: HashComputer | None = None,
    include_hidden: bool = False,
) -> list[IntegrityEntry]:
    """Compare each model's computed hash with the hash stored in its sidecar.

    Per-file failures are reported on the entry (``status="error"``); the walk
    always covers the whole tree.

    Args:
        models_dir: Root of the models tree.
        file_type: Which primary format to check.
        hasher: Hash implementation; defaults to :class:`HashComputer`.
        include_hidden: Whether to descend into dot-directories.

    Returns:
        list[IntegrityEntry]: One entry per model file, sorted by base name.
    """
    extension = f".{file_type}"
    if extension not in PRIMARY_EXTENSIONS:
        raise ValueError(f"Unsupported file type: {file_type}")
    sidecar_suffix = PRIMARY_EXTENSIONS[extension]
    hasher = hasher or HashComputer()

    models: dict[str, str] = {}
    sidecars: dict[str, str] = {}
    for path in iter_files(models_dir, include_hidden=include_hidden):
        relative = relative_posix(path, models_dir)
        lowered = relative.lower()
        if is_gcode_archive(lowered):
            continue
        if lowered.endswith(extension):
            models[relative[: -len(extension)]] = relative
        elif lowered.endswith(sidecar_suffix):
            # "-stl-munchie.json" also ends with "-munchie.json"; keep formats apart.
            if file_type == "3mf" and lowered.endswith(PRIMARY_EXTENSIONS[".stl"]):
                continue
            sidecars[relative[: -len(sidecar_suffix)]] = relative

    entries: list[IntegrityEntry] = []
    by_hash: dict[str, list[str]] = defaultdict(list)
    for base in sorted(models):
        entry = IntegrityEntry(base_name=base, model=models[base], metadata=sidecars.get(base))
        model_path = models_dir / models[base]
        try:
            entry.hash = hasher.compute(model_path)
        except OSError as exc:
            LOGGER.warning("Unable to hash %s: %s", model_path, exc)
            entry.status = "error"
            entry.details = f"Failed to compute hash: {exc}"
            entries.append(entry)
            continue

        if entry.metadata is None:
            entry.status = "missing_metadata"
            entry.details = "Metadata file missing"
        else:
            entry.stored_hash = _stored_hash(models_dir / entry.metadata, entry)
            if entry.stored_hash and entry.stored_hash != entry.hash:
                entry.status = "changed"
                entry.details = "Hash mismatch: file changed since last recorded"

        by_hash[entry.hash].append(base)
        entries.append(entry)

    for entry in entries:
        if entry.hash and len(by_hash[entry.hash]) > 1:
            entry.duplicates = [base for base in by_hash[entry.hash] if base != entry.base_name]
    return entries


def _stored_hash(sidecar: Path, entry: IntegrityEntry) -> str | None:
    try:
        data = read_json(sidecar)
    except (OSError, json.JSONDecodeError) as exc:
        entry.details = f"Failed to read metadata: {exc}"
        return None
    if not isinstance(data, dict):
        return None
    for key in ("hash", "md5", "fileHash"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


__all__ = ["FileType", "check_integrity"]
