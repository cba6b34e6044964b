"""Collection data models persisted in the collection store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

AUTO_IMPORTED_CATEGORY = "Auto-Imported"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def unique_ids(values: Any) -> list[str]:
    """Return non-blank string ids in first-seen order without duplicates."""
    if not isinstance(values, (list, tuple, set)):
        return []
    return list(dict.fromkeys(value for value in values if isinstance(value, str) and value.strip()))


class Collection(BaseModel):
    """A named group of models, either derived from a folder or created by hand.

    Attributes:
        id: Folder-derived (``col_<base64>``) or manual (``col-<stamp>-<rand>``) identifier.
        name: Display name; the folder base name for derived collections.
        description: Free-form description.
        model_ids: Ordered, de-duplicated member model ids.
        child_collection_ids: Manually curated child collection ids.
        parent_id: Parent collection id, if any.
        cover_model_id: Model used as cover when no image is set.
        cover_image: Cover image reference.
        category: Category label; the auto-imported marker flags derived collections.
        tags: Collection tags.
        images: Image references attached to the collection.
        created: Creation timestamp.
        last_modified: Timestamp of the last change.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str
    description: str = ""
    model_ids: List[str] = Field(default_factory=list)
    child_collection_ids: List[str] = Field(default_factory=list)
    parent_id: Optional[str] = None
    cover_model_id: Optional[str] = None
    cover_image: Optional[str] = None
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    @field_validator("model_ids", mode="before")
    @classmethod
    def _dedupe_model_ids(cls, value: Any) -> list[str]:
        return unique_ids(value)

    @field_validator("child_collection_ids", "tags", "images", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            return []
        return [item for item in value if isinstance(item, str)]

    @field_validator("description", "category", mode="before")
    @classmethod
    def _empty_string(cls, value: Any) -> str:
        return "" if value is None else value

    @property
    def is_auto_imported(self) -> bool:
        """Return whether the collection carries the auto-imported marker."""
        return self.category.strip().lower() == AUTO_IMPORTED_CATEGORY.lower()

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-ready representation written to the store."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["AUTO_IMPORTED_CATEGORY", "Collection", "unique_ids", "utcnow"]
