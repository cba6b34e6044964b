"""Persistence of the collection store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError

from modelshelf.library.io import read_json, write_json_atomic

from .errors import CollectionNotFoundError, ModelshelfError, StoreError, ValidationError
from .models import AUTO_IMPORTED_CATEGORY, Collection

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTIONS_FILE = Path("data/collections.json")


class CollectionStore:
    """Load and save the persisted list of collections.

    The store is pure I/O: no caching and no business rules. Every call reads or
    writes the backing file directly so callers always see the latest state.
    """

    def __init__(self, path: Path | str = DEFAULT_COLLECTIONS_FILE) -> None:
        """Initialize the store for a collections file.

        Args:
            path: Location of the JSON document holding the collections.
        """
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        """Return the path of the backing collections file."""
        return self._path

    def load(self) -> list[Collection]:
        """Load every collection from disk.

        Both the array form and the legacy ``{"collections": [...]}`` object are
        accepted. A missing or empty file yields an empty store.

        Returns:
            list[Collection]: Collections in stored order.

        Raises:
            StoreError: If the file cannot be read or parsed, or holds anything
                other than a list of collection objects.
        """
        if not self._path.exists():
            return []
        try:
            data = read_json(self._path)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid collection store data in {self._path}: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Unable to read collection store {self._path}: {exc}") from exc
        return self._parse(data)

    def load_documents(self) -> list[dict[str, Any]]:
        """Return the stored collections as JSON-ready dictionaries."""
        return [collection.to_document() for collection in self.load()]

    def save(self, collections: Iterable[Collection]) -> None:
        """Persist collections atomically in the array form.

        Args:
            collections: Collections to write, in order.

        Raises:
            StoreError: If the file cannot be written.
        """
        payload = [collection.to_document() for collection in collections]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self._path, payload)
        except OSError as exc:
            raise StoreError(f"Unable to write collection store {self._path}: {exc}") from exc
        LOGGER.debug("Saved %d collections to %s", len(payload), self._path)

    def _parse(self, data: Any) -> list[Collection]:
        if data is None:
            return []
        if isinstance(data, dict) and "collections" in data:
            data = data["collections"]
        if not isinstance(data, list):
            raise StoreError(f"Unexpected collection store layout in {self._path}: {type(data).__name__}")

        collections: list[Collection] = []
        for index, entry in enumerate(data):
            if not isinstance(entry, dict):
                raise StoreError(f"Malformed collection entry #{index} in {self._path}: {entry!r}")
            try:
                collections.append(Collection.model_validate(entry))
            except PydanticValidationError as exc:
                raise StoreError(f"Invalid collection entry in {self._path}: {exc}") from exc
        return collections


__all__ = [
    "AUTO_IMPORTED_CATEGORY",
    "Collection",
    "CollectionNotFoundError",
    "CollectionStore",
    "DEFAULT_COLLECTIONS_FILE",
    "ModelshelfError",
    "StoreError",
    "ValidationError",
]
