"""Content-addressable backup and restore of model metadata and collections."""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future
from pathlib import Path
from typing import Any, get_args

from pydantic import ValidationError as PydanticValidationError

from modelshelf.library.detectors import HashComputer
from modelshelf.library.discovery import iter_metadata_files, iter_primary_models, relative_posix
from modelshelf.library.io import write_json_atomic
from modelshelf.library.sidecars import companion_metadata_path, protect_model_write
from modelshelf.state import CollectionStore, StoreError
from modelshelf.state.errors import ValidationError
from modelshelf.state.models import Collection, utcnow
from modelshelf.state.queue import MutationQueue
from modelshelf.sync.identity import make_manual_id, validate_relative_path

from .models import (
    BackupEnvelope,
    BackupFile,
    CollectionsStrategy,
    RestoredFile,
    RestoreFailure,
    RestoreResult,
    RestoreStrategy,
    SkippedFile,
)

LOGGER = logging.getLogger(__name__)

RESTORE_STRATEGIES: tuple[str, ...] = get_args(RestoreStrategy)
COLLECTIONS_STRATEGIES: tuple[str, ...] = get_args(CollectionsStrategy)
COLLECTIONS_ENTRY = "collections.json"


class BackupService:
    """Snapshot sidecars and collections, and restore them by hash or path.

    Restores under ``hash-match`` follow a model file wherever it has moved:
    the backup's recorded hash is looked up among the model files currently on
    disk and the metadata is written next to the match.
    """

    def __init__(
        self,
        models_dir: Path,
        store: CollectionStore,
        *,
        queue: MutationQueue | None = None,
        hasher: HashComputer | None = None,
        include_hidden: bool = False,
    ) -> None:
        """Initialize the service.

        Args:
            models_dir: Models root holding model files and sidecars.
            store: Collection store included in backups and restored into.
            queue: Mutation queue for store writes; defaults to the shared queue.
            hasher: Hash implementation matching the hashes stored in sidecars.
            include_hidden: Whether walks descend into dot-directories.
        """
        self.models_dir = models_dir.expanduser()
        self.store = store
        self.queue = queue or MutationQueue.for_store(store)
        self.hasher = hasher or HashComputer()
        self.include_hidden = include_hidden

    # ------------------------------------------------------------------ #
    # Backup                                                             #
    # ------------------------------------------------------------------ #

    def backup(self) -> BackupEnvelope:
        """Capture every sidecar under the models root plus the collection store.

        Unreadable sidecars are logged and left out. Compression is the
        caller's concern (see :mod:`modelshelf.backup.archive`).
        """
        envelope = BackupEnvelope(timestamp=utcnow().isoformat().replace("+00:00", "Z"))
        if self.models_dir.is_dir():
            for path in iter_metadata_files(self.models_dir, include_hidden=self.include_hidden):
                entry = self._backup_file(path)
                if entry is not None:
                    envelope.files.append(entry)

        try:
            envelope.collections = self.store.load_documents()
        except StoreError as exc:
            LOGGER.warning("Backup will not include collections: %s", exc)

        LOGGER.info(
            "Backup captured %d metadata files and %d collections",
            len(envelope.files),
            len(envelope.collections or []),
        )
        return envelope

    def _backup_file(self, path: Path) -> BackupFile | None:
        try:
            raw = path.read_text(encoding="utf-8")
            content = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.error("Error reading metadata file %s: %s", path, exc)
            return None
        relative = relative_posix(path, self.models_dir)
        stored_hash = content.get("hash") if isinstance(content, dict) else None
        return BackupFile(
            relative_path=relative,
            original_path=relative,
            content=content,
            hash=stored_hash if isinstance(stored_hash, str) and stored_hash else None,
            size=len(raw.encode("utf-8")),
        )

    # ------------------------------------------------------------------ #
    # Restore                                                            #
    # ------------------------------------------------------------------ #

    def restore(
        self,
        envelope: BackupEnvelope,
        strategy: str = "hash-match",
        collections_strategy: str = "merge",
    ) -> RestoreResult:
        """Write backed-up metadata back to disk and restore collections.

        Args:
            envelope: Backup to restore.
            strategy: ``hash-match`` (follow moved files by content hash, then
                fall back to the original path), ``path-match`` (only the
                original path), or ``force`` (always the original path).
            collections_strategy: ``merge`` (union by id, backup wins) or
                ``replace`` (overwrite the store).

        Returns:
            RestoreResult: Restored, skipped, and failed records.

        Raises:
            ValidationError: If a strategy is unknown.
        """
        if strategy not in RESTORE_STRATEGIES:
            raise ValidationError(f"Unknown restore strategy {strategy!r}; expected one of {', '.join(RESTORE_STRATEGIES)}.")
        if collections_strategy not in COLLECTIONS_STRATEGIES:
            raise ValidationError(
                f"Unknown collections strategy {collections_strategy!r}; expected one of {', '.join(COLLECTIONS_STRATEGIES)}."
            )

        result = RestoreResult(strategy=strategy)
        result.collections.strategy = collections_strategy
        hash_index = self.index_by_hash() if strategy == "hash-match" else {}

        if envelope.collections is not None:
            self._restore_collections(envelope.collections, collections_strategy, result)

        for entry in envelope.files:
            try:
                self._restore_file(entry, strategy, hash_index, result)
            except (OSError, ValidationError, TypeError, ValueError) as exc:
                LOGGER.warning("Failed to restore %s: %s", entry.original_path, exc)
                result.errors.append(RestoreFailure(original_path=entry.original_path, error=str(exc)))

        LOGGER.info("Restore completed (%s): %s", strategy, result.summary)
        return result

    def index_by_hash(self) -> dict[str, Path]:
        """Map content hashes of current model files to their companion sidecars.

        Only models whose sidecar exists are indexed; hashing failures are
        logged and skipped. Models are visited in name order, and when several
        share a hash the last one visited wins.
        """
        index: dict[str, Path] = {}
        if not self.models_dir.is_dir():
            return index
        for model_path in iter_primary_models(self.models_dir, include_hidden=self.include_hidden):
            sidecar = companion_metadata_path(model_path)
            if not sidecar.exists():
                continue
            try:
                digest = self.hasher.compute(model_path)
            except OSError as exc:
                LOGGER.error("Error hashing model file %s: %s", model_path, exc)
                continue
            if digest in index:
                LOGGER.debug("Hash %s shared by %s and %s; keeping the latter", digest, index[digest], sidecar)
            index[digest] = sidecar
        return index

    def _restore_file(
        self,
        entry: BackupFile,
        strategy: str,
        hash_index: dict[str, Path],
        result: RestoreResult,
    ) -> None:
        original = self.models_dir / validate_relative_path(entry.original_path)
        target: Path | None = None
        reason = ""

        if strategy == "force":
            target = original
            target.parent.mkdir(parents=True, exist_ok=True)
            reason = "Force restore to original path"
        else:
            match = hash_index.get(entry.hash) if strategy == "hash-match" and entry.hash else None
            if match is not None:
                target = match
                reason = f"Hash match: {entry.hash[:8]}... -> {match.name}"
            elif original.exists():
                target = original
                reason = "Path match (no hash match found)" if strategy == "hash-match" else "Path match"

        if target is None:
            why = "No matching file found (hash or path)" if strategy == "hash-match" else "Original path not found"
            result.skipped.append(SkippedFile(original_path=entry.original_path, reason=why))
            return

        safe_target = protect_model_write(target)
        write_json_atomic(safe_target, entry.content)
        result.restored.append(
            RestoredFile(
                original_path=entry.original_path,
                restored_path=relative_posix(safe_target, self.models_dir),
                reason=reason,
                size=entry.size,
            )
        )

    def _restore_collections(
        self,
        documents: list[dict[str, Any]],
        collections_strategy: str,
        result: RestoreResult,
    ) -> None:
        restored: list[tuple[Collection, bool]] = []
        for index, document in enumerate(documents):
            try:
                restored.append((_to_collection(document), _has_id(document)))
            except (ValidationError, PydanticValidationError) as exc:
                LOGGER.warning("Skipping backup collection #%d: %s", index, exc)
                result.collections.skipped += 1
                result.errors.append(
                    RestoreFailure(original_path=f"{COLLECTIONS_ENTRY}#{index}", error=f"Invalid collection: {exc}")
                )

        def _transform(current: list[Collection]) -> list[Collection]:
            if collections_strategy == "replace":
                return _dedupe([collection for collection, _ in restored])
            by_id = {collection.id: collection for collection in current}
            fresh: list[Collection] = []
            for collection, had_id in restored:
                if had_id:
                    by_id[collection.id] = collection
                else:
                    fresh.append(collection)
            return _dedupe([*fresh, *by_id.values()])

        future: Future[list[Collection]] = self.queue.enqueue(_transform)
        try:
            saved = future.result()
        except (StoreError, ValidationError, PydanticValidationError) as exc:
            LOGGER.warning("Failed to restore collections from backup: %s", exc)
            result.collections.skipped = len(documents)
            result.errors.append(
                RestoreFailure(original_path=COLLECTIONS_ENTRY, error=f"Failed to restore collections: {exc}")
            )
            return
        result.collections.restored = len(saved)


def _has_id(document: dict[str, Any]) -> bool:
    value = document.get("id") if isinstance(document, dict) else None
    return isinstance(value, str) and bool(value)


def _to_collection(document: dict[str, Any]) -> Collection:
    if not isinstance(document, dict):
        raise ValidationError("Backup collection entries must be objects.")
    if not _has_id(document):
        document = {**document, "id": make_manual_id()}
    return Collection.model_validate(document)


def _dedupe(collections: list[Collection]) -> list[Collection]:
    seen: set[str] = set()
    unique: list[Collection] = []
    for collection in collections:
        if collection.id in seen:
            continue
        seen.add(collection.id)
        unique.append(collection)
    return unique


__all__ = ["BackupService", "COLLECTIONS_STRATEGIES", "RESTORE_STRATEGIES"]
