"""Transforms for hand-made collection edits: create, update, delete, add models."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from modelshelf.state.errors import CollectionNotFoundError, ValidationError
from modelshelf.state.models import AUTO_IMPORTED_CATEGORY, Collection, unique_ids, utcnow
from modelshelf.state.queue import Transform

from .identity import collection_id_for_relative, decode_collection_id, validate_relative_path

LOGGER = logging.getLogger(__name__)

_UNSAFE_FOLDER_CHARS = re.compile(r"[^a-zA-Z0-9_\- ]")


class CollectionDraft(BaseModel):
    """Caller-supplied fields for creating or updating a collection.

    Attributes:
        name: Required display name.
        description: Optional description.
        model_ids: Member model ids; blanks and duplicates are dropped.
        child_collection_ids: Manually curated children.
        parent_id: Parent id; ``"root"`` means no parent.
        cover_model_id: Optional cover model.
        category: Category label; left untouched on update when empty.
        tags: Replacement tags, when provided.
        images: Replacement images, when provided.
    """

    name: str
    description: str = ""
    model_ids: List[str] = Field(default_factory=list)
    child_collection_ids: List[str] = Field(default_factory=list)
    parent_id: Optional[str] = None
    cover_model_id: Optional[str] = None
    category: str = ""
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None

    @field_validator("model_ids", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> list[str]:
        return unique_ids(value)

    @field_validator("parent_id", mode="before")
    @classmethod
    def _normalize_parent(cls, value: Any) -> Any:
        return None if value in ("", "root") else value

    @classmethod
    def build(cls, **fields: Any) -> "CollectionDraft":
        """Validate a draft, raising :class:`ValidationError` for a missing name."""
        name = fields.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required")
        return cls(**fields)


def upsert_transform(draft: CollectionDraft, collection_id: str) -> Transform:
    """Return a transform that updates ``collection_id`` or appends it when new."""

    def _transform(collections: list[Collection]) -> list[Collection]:
        now = utcnow()
        for position, existing in enumerate(collections):
            if existing.id != collection_id:
                continue
            update: dict[str, Any] = {
                "name": draft.name,
                "description": draft.description,
                "model_ids": list(draft.model_ids),
                "child_collection_ids": list(draft.child_collection_ids),
                "parent_id": draft.parent_id,
                "cover_model_id": draft.cover_model_id,
                "last_modified": now,
            }
            if draft.category:
                update["category"] = draft.category
            if draft.tags is not None:
                update["tags"] = list(draft.tags)
            if draft.images is not None:
                update["images"] = list(draft.images)
            collections[position] = existing.model_copy(update=update)
            return collections

        collections.append(
            Collection(
                id=collection_id,
                name=draft.name,
                description=draft.description,
                model_ids=draft.model_ids,
                child_collection_ids=draft.child_collection_ids,
                parent_id=draft.parent_id,
                cover_model_id=draft.cover_model_id,
                category=draft.category,
                tags=draft.tags or [],
                images=draft.images or [],
                created=now,
                last_modified=now,
            )
        )
        return collections

    return _transform


def delete_transform(collection_id: str) -> Transform:
    """Return a transform removing ``collection_id``.

    The transform raises :class:`CollectionNotFoundError` when the id is absent,
    which rejects only that queued task.
    """

    def _transform(collections: list[Collection]) -> list[Collection]:
        remaining = [collection for collection in collections if collection.id != collection_id]
        if len(remaining) == len(collections):
            raise CollectionNotFoundError(f"Collection not found: {collection_id}")
        return remaining

    return _transform


def add_models_transform(relative_folder: str, model_ids: list[str]) -> Transform:
    """Return a transform adding uploaded models to a folder's collection.

    The folder-derived collection is created when it does not exist yet.
    """
    relative = validate_relative_path(relative_folder)
    if not relative:
        raise ValidationError("Models placed in the library root do not belong to a folder collection.")
    target_id = collection_id_for_relative(relative)
    additions = unique_ids(model_ids)

    def _transform(collections: list[Collection]) -> list[Collection]:
        now = utcnow()
        for position, existing in enumerate(collections):
            if existing.id != target_id:
                continue
            merged = list(dict.fromkeys([*existing.model_ids, *additions]))
            if merged != existing.model_ids:
                collections[position] = existing.model_copy(update={"model_ids": merged, "last_modified": now})
            return collections
        collections.append(
            Collection(
                id=target_id,
                name=relative.rsplit("/", 1)[-1],
                model_ids=additions,
                category=AUTO_IMPORTED_CATEGORY,
                created=now,
                last_modified=now,
            )
        )
        return collections

    return _transform


def sanitize_folder_name(name: str) -> str:
    """Return ``name`` reduced to characters safe for a folder name."""
    return _UNSAFE_FOLDER_CHARS.sub("", name).strip()


def create_collection_folder(
    models_dir: Path,
    name: str,
    parent: Collection | None = None,
) -> tuple[Path, str]:
    """Create the physical folder backing a new collection.

    The folder goes under the parent's folder when the parent is folder-derived,
    otherwise directly under the models root.

    Args:
        models_dir: Models root.
        name: Collection name, sanitized for the filesystem.
        parent: Optional parent collection.

    Returns:
        tuple[Path, str]: The folder path and its folder-derived collection id.

    Raises:
        ValidationError: If the name has no usable characters or the parent path escapes the root.
    """
    safe_name = sanitize_folder_name(name)
    if not safe_name:
        raise ValidationError(f"Collection name {name!r} has no characters usable in a folder name.")

    parent_relative = ""
    if parent is not None:
        decoded = decode_collection_id(parent.id)
        if decoded is None:
            LOGGER.info("Parent %s is not folder-backed; creating folder at the models root.", parent.id)
        else:
            parent_relative = validate_relative_path(decoded)

    relative = f"{parent_relative}/{safe_name}" if parent_relative else safe_name
    folder = models_dir / relative
    if not folder.exists():
        folder.mkdir(parents=True)
        LOGGER.info("Created collection folder %s", folder)
    return folder, collection_id_for_relative(relative)


__all__ = [
    "CollectionDraft",
    "add_models_transform",
    "create_collection_folder",
    "delete_transform",
    "sanitize_folder_name",
    "upsert_transform",
]
