"""Data models describing model metadata discovered on disk."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class ModelRecord(BaseModel):
    """The slice of a model metadata sidecar this engine reads.

    Attributes:
        id: Model identifier stored in the sidecar.
        tags: Current tag list.
        hidden: Derived visibility flag.
        hash: Content hash of the primary model file, when recorded.
        relative_path: Sidecar path relative to the models root, ``/``-separated.
        path: Absolute sidecar path.
    """

    id: str
    tags: List[str] = Field(default_factory=list)
    hidden: bool = False
    hash: Optional[str] = None
    relative_path: str
    path: Path


class IntegrityEntry(BaseModel):
    """Hash check outcome for one model.

    Attributes:
        base_name: Relative path of the model without its extension.
        model: Relative path of the primary model file, if present.
        metadata: Relative path of the sidecar, if present.
        hash: Hash computed from the model file.
        stored_hash: Hash recorded in the sidecar.
        status: One of ``ok``, ``missing_metadata``, ``changed``, ``error``.
        details: Human-readable explanation for non-ok statuses.
        duplicates: Other base names sharing the same computed hash.
    """

    base_name: str
    model: Optional[str] = None
    metadata: Optional[str] = None
    hash: Optional[str] = None
    stored_hash: Optional[str] = None
    status: str = "ok"
    details: str = ""
    duplicates: List[str] = Field(default_factory=list)


__all__ = ["IntegrityEntry", "ModelRecord"]
