"""Walk the models tree for metadata sidecars and primary model files."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterator

from .io import read_json
from .models import ModelRecord
from .sidecars import is_metadata_file, is_primary_model

LOGGER = logging.getLogger(__name__)


def relative_posix(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` with ``/`` separators."""
    return os.path.relpath(path, root).replace(os.sep, "/")


def iter_files(root: Path, *, include_hidden: bool = False) -> Iterator[Path]:
    """Yield every file below ``root`` depth-first, in name order.

    Unreadable directories are logged and skipped.

    Args:
        root: Directory to walk.
        include_hidden: Whether to descend into entries whose name starts with ``.``.
    """
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as handle:
                entries = sorted(handle, key=lambda entry: entry.name)
        except OSError as exc:
            LOGGER.warning("Skipping unreadable directory %s: %s", directory, exc)
            continue

        subdirectories: list[Path] = []
        for entry in entries:
            if not include_hidden and entry.name.startswith("."):
                continue
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if is_dir:
                subdirectories.append(Path(entry.path))
            elif entry.is_file():
                yield Path(entry.path)
        stack.extend(reversed(subdirectories))


def iter_metadata_files(root: Path, *, include_hidden: bool = False) -> Iterator[Path]:
    """Yield every metadata sidecar below ``root``."""
    for path in iter_files(root, include_hidden=include_hidden):
        if is_metadata_file(path.name):
            yield path


def iter_primary_models(root: Path, *, include_hidden: bool = False) -> Iterator[Path]:
    """Yield every primary model file (``.3mf``/``.stl``) below ``root``."""
    for path in iter_files(root, include_hidden=include_hidden):
        if is_primary_model(path.name):
            yield path


class MetadataScanner:
    """Produce :class:`ModelRecord` views of the sidecars under a models root.

    Files that cannot be read or parsed are skipped; their messages are kept on
    :attr:`errors` for the caller.
    """

    def __init__(self, *, include_hidden: bool = False) -> None:
        self.include_hidden = include_hidden
        self.errors: list[str] = []

    def scan(self, root: Path) -> Iterator[ModelRecord]:
        """Yield a record for every sidecar under ``root`` that carries an id."""
        self.errors = []
        root = root.expanduser()
        if not root.is_dir():
            return

        for path in iter_metadata_files(root, include_hidden=self.include_hidden):
            record = self.read_record(path, root)
            if record is not None:
                yield record

    def read_record(self, path: Path, root: Path) -> ModelRecord | None:
        """Return the record for a single sidecar, or ``None`` when unusable."""
        try:
            data = read_json(path)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Unable to read model metadata %s: %s", path, exc)
            self.errors.append(f"{path}: {exc}")
            return None
        if not isinstance(data, dict):
            return None

        model_id = data.get("id")
        if not isinstance(model_id, str) or not model_id:
            return None
        tags = data.get("tags")
        stored_hash = data.get("hash")
        return ModelRecord(
            id=model_id,
            tags=[tag for tag in tags if isinstance(tag, str)] if isinstance(tags, list) else [],
            hidden=data.get("hidden") is True,
            hash=stored_hash if isinstance(stored_hash, str) and stored_hash else None,
            relative_path=relative_posix(path, root),
            path=path,
        )


__all__ = [
    "MetadataScanner",
    "iter_files",
    "iter_metadata_files",
    "iter_primary_models",
    "relative_posix",
]
