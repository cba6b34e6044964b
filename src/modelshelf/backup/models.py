"""Backup envelope and restore result models."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

BACKUP_VERSION = "1.0.0"

RestoreStrategy = Literal["hash-match", "path-match", "force"]
CollectionsStrategy = Literal["merge", "replace"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-ready, camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


class BackupFile(_CamelModel):
    """One metadata sidecar captured in a backup.

    Attributes:
        relative_path: Sidecar path relative to the models root.
        original_path: Path the sidecar is restored to under ``path-match``/``force``.
        content: Parsed sidecar document.
        hash: Content hash of the paired model file, when recorded.
        size: Size of the sidecar in bytes.
    """

    relative_path: str
    original_path: str
    content: Any = None
    hash: Optional[str] = None
    size: int = 0


class BackupEnvelope(_CamelModel):
    """Snapshot of every sidecar plus the collection store."""

    timestamp: str
    version: str = BACKUP_VERSION
    files: List[BackupFile] = Field(default_factory=list)
    collections: Optional[List[Dict[str, Any]]] = None

    def to_document(self) -> dict[str, Any]:
        document = super().to_document()
        if self.collections is None:
            document.pop("collections", None)
        return document


class RestoredFile(_CamelModel):
    original_path: str
    restored_path: str
    reason: str
    size: int = 0


class SkippedFile(_CamelModel):
    original_path: str
    reason: str


class RestoreFailure(_CamelModel):
    original_path: str
    error: str


class CollectionsOutcome(_CamelModel):
    restored: int = 0
    skipped: int = 0
    strategy: str = "merge"


class RestoreResult(_CamelModel):
    """Per-record outcome of a restore; a failure never aborts the batch."""

    strategy: str
    restored: List[RestoredFile] = Field(default_factory=list)
    skipped: List[SkippedFile] = Field(default_factory=list)
    errors: List[RestoreFailure] = Field(default_factory=list)
    collections: CollectionsOutcome = Field(default_factory=CollectionsOutcome)

    @property
    def summary(self) -> str:
        """Return a one-line description of the restore."""
        return (
            f"Restored {len(self.restored)} files, skipped {len(self.skipped)}, "
            f"{len(self.errors)} errors"
        )

    def to_document(self) -> dict[str, Any]:
        document = super().to_document()
        document["summary"] = self.summary
        return document


__all__ = [
    "BACKUP_VERSION",
    "BackupEnvelope",
    "BackupFile",
    "CollectionsOutcome",
    "CollectionsStrategy",
    "RestoreFailure",
    "RestoreResult",
    "RestoreStrategy",
    "RestoredFile",
    "SkippedFile",
]
