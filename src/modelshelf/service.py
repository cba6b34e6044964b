"""High-level orchestration of collection mutations, imports, and backups."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from modelshelf.backup import BackupEnvelope, BackupService, RestoreResult
from modelshelf.config.models import ModelshelfConfig
from modelshelf.library.discovery import MetadataScanner
from modelshelf.library.integrity import FileType, check_integrity
from modelshelf.library.models import IntegrityEntry
from modelshelf.state import CollectionStore
from modelshelf.state.errors import CollectionNotFoundError
from modelshelf.state.models import AUTO_IMPORTED_CATEGORY, Collection
from modelshelf.state.queue import MutationQueue, Transform
from modelshelf.sync.derivation import DerivationEngine
from modelshelf.sync.identity import collection_id_for_relative, make_manual_id, validate_relative_path
from modelshelf.sync.merge import MergeReconciler, MergeSummary
from modelshelf.sync.mutations import (
    CollectionDraft,
    add_models_transform,
    create_collection_folder,
    delete_transform,
    upsert_transform,
)
from modelshelf.sync.visibility import HiddenFlagReconciler, ReconcileReport

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ImportReport:
    """Outcome of an auto-import run.

    Attributes:
        scan_root: Folder that was scanned.
        strategy: Derivation strategy used.
        clear_previous: Whether earlier auto-derived collections were pruned.
        discovered: Number of candidate collections found.
        merge: Added/updated/pruned counts from the merge.
        tagged: Sidecars that received a folder tag.
        errors: Per-file problems met during the scan.
    """

    scan_root: Path
    strategy: str
    clear_previous: bool
    discovered: int
    merge: MergeSummary
    tagged: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        """Return the human-readable completion message."""
        reset = "Reset performed. " if self.clear_previous else ""
        return f"Import complete. {reset}Processed {self.discovered} collections."


class CollectionService:
    """Entry point for every operation that reads or changes collections.

    All store writes go through the process-wide :class:`MutationQueue`. After
    each successful write, hidden flags are reconciled on a background worker;
    :meth:`wait_for_reconcile` blocks until the most recent run has finished.
    """

    def __init__(
        self,
        models_dir: Path,
        store: CollectionStore,
        *,
        queue: MutationQueue | None = None,
        default_strategy: str = "smart",
        auto_tag: bool = True,
        include_hidden: bool = False,
    ) -> None:
        """Initialize the service.

        Args:
            models_dir: Models root holding model files and sidecars.
            store: Collection store handle.
            queue: Mutation queue; defaults to the shared queue for ``store``.
            default_strategy: Derivation strategy used when callers pass none.
            auto_tag: Whether imports tag sidecars with their folder name.
            include_hidden: Whether walks descend into dot-directories.
        """
        self.models_dir = models_dir.expanduser()
        self.store = store
        self.queue = queue or MutationQueue.for_store(store)
        self.default_strategy = default_strategy
        self._engine = DerivationEngine(auto_tag=auto_tag, include_hidden=include_hidden)
        self._merger = MergeReconciler()
        self._backups = BackupService(self.models_dir, store, queue=self.queue, include_hidden=include_hidden)
        self._include_hidden = include_hidden
        self._reconcile_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="modelshelf-reconcile")
        self._reconcile_lock = threading.Lock()
        self._last_reconcile: Optional[Future[ReconcileReport]] = None

    @classmethod
    def from_config(cls, config: ModelshelfConfig) -> "CollectionService":
        """Build a service from loaded configuration."""
        return cls(
            config.library.models_dir,
            CollectionStore(config.library.collections_file),
            default_strategy=config.scan.default_strategy,
            auto_tag=config.scan.auto_tag,
            include_hidden=not config.scan.skip_hidden,
        )

    # ------------------------------------------------------------------ #
    # Collections                                                        #
    # ------------------------------------------------------------------ #

    def list_collections(self) -> list[Collection]:
        """Return the stored collections."""
        return self.store.load()

    def get_collection(self, collection_id: str) -> Collection:
        """Return one collection.

        Raises:
            CollectionNotFoundError: If no collection has ``collection_id``.
        """
        for collection in self.store.load():
            if collection.id == collection_id:
                return collection
        raise CollectionNotFoundError(f"Collection not found: {collection_id}")

    def save_collection(
        self,
        *,
        collection_id: str | None = None,
        create_on_disk: bool = False,
        **fields: Any,
    ) -> Collection:
        """Create or update a collection.

        Args:
            collection_id: Existing id to update; a new id is generated when absent.
            create_on_disk: For new collections, create a backing folder so later
                scans map onto the same folder-derived id.
            **fields: :class:`CollectionDraft` fields (``name`` is required).

        Returns:
            Collection: The collection as saved.

        Raises:
            ValidationError: If ``name`` is missing or blank.
        """
        draft = CollectionDraft.build(**fields)
        target_id = collection_id or None
        if target_id is None and create_on_disk:
            parent = None
            if draft.parent_id:
                parent = next((item for item in self.store.load() if item.id == draft.parent_id), None)
            _, target_id = create_collection_folder(self.models_dir, draft.name, parent)
            draft = draft.model_copy(update={"category": AUTO_IMPORTED_CATEGORY})
        elif target_id is None:
            target_id = make_manual_id()

        saved = self._mutate(upsert_transform(draft, target_id))
        return next(collection for collection in saved if collection.id == target_id)

    def delete_collection(self, collection_id: str) -> None:
        """Delete a collection.

        Raises:
            CollectionNotFoundError: If no collection has ``collection_id``.
        """
        self._mutate(delete_transform(collection_id))
        LOGGER.info("Deleted collection %s", collection_id)

    def add_uploaded_models(self, relative_folder: str, model_ids: list[str]) -> Collection:
        """Attach newly uploaded models to the collection of the folder they landed in."""
        transform = add_models_transform(relative_folder, model_ids)
        saved = self._mutate(transform)
        target_id = collection_id_for_relative(validate_relative_path(relative_folder))
        return next(collection for collection in saved if collection.id == target_id)

    # ------------------------------------------------------------------ #
    # Auto-import                                                        #
    # ------------------------------------------------------------------ #

    def auto_import(
        self,
        *,
        folder: str | None = None,
        strategy: str | None = None,
        clear_previous: bool = False,
    ) -> ImportReport:
        """Derive collections from the folder tree and merge them into the store.

        Args:
            folder: Optional folder below the models root to scan instead of the root.
            strategy: Derivation strategy; the configured default when omitted.
            clear_previous: Prune every auto-derived collection before merging.

        Returns:
            ImportReport: What was discovered and how the store changed.

        Raises:
            ValidationError: If ``folder`` escapes the models root or the strategy is unknown.
            CollectionNotFoundError: If the folder to scan does not exist.
        """
        scan_root = self.models_dir
        if folder:
            relative = validate_relative_path(folder)
            if relative:
                scan_root = self.models_dir / relative
        strategy = strategy or self.default_strategy

        LOGGER.info("Scanning %s (strategy=%s, clear_previous=%s)", scan_root, strategy, clear_previous)
        derived = self._engine.derive(scan_root, self.models_dir, strategy)

        summaries: list[MergeSummary] = []

        def _merge(collections: list[Collection]) -> list[Collection]:
            merged, summary = self._merger.merge_with_summary(
                collections, derived.candidates, clear_previous=clear_previous
            )
            summaries.append(summary)
            return merged

        self._mutate(_merge)
        return ImportReport(
            scan_root=scan_root,
            strategy=strategy,
            clear_previous=clear_previous,
            discovered=len(derived.candidates),
            merge=summaries[-1],
            tagged=derived.tagged,
            errors=list(derived.errors),
        )

    # ------------------------------------------------------------------ #
    # Hidden flags                                                       #
    # ------------------------------------------------------------------ #

    def reconcile_now(self) -> ReconcileReport:
        """Reconcile hidden flags synchronously against the current store."""
        reconciler = HiddenFlagReconciler(MetadataScanner(include_hidden=self._include_hidden))
        return reconciler.reconcile(self.store.load(), self.models_dir)

    def schedule_reconcile(self) -> Future[ReconcileReport]:
        """Queue a background reconciliation and return its future."""
        with self._reconcile_lock:
            future = self._reconcile_executor.submit(self.reconcile_now)
            future.add_done_callback(self._log_reconcile_failure)
            self._last_reconcile = future
        return future

    def wait_for_reconcile(self, timeout: float | None = None) -> ReconcileReport | None:
        """Block until the most recently scheduled reconciliation finishes.

        Returns:
            ReconcileReport | None: Its report, or ``None`` if none was scheduled.
        """
        with self._reconcile_lock:
            future = self._last_reconcile
        if future is None:
            return None
        return future.result(timeout=timeout)

    # ------------------------------------------------------------------ #
    # Backup, restore, integrity                                         #
    # ------------------------------------------------------------------ #

    def backup(self) -> BackupEnvelope:
        """Snapshot all sidecars and the collection store."""
        return self._backups.backup()

    def restore(
        self,
        envelope: BackupEnvelope,
        strategy: str = "hash-match",
        collections_strategy: str = "merge",
    ) -> RestoreResult:
        """Restore a backup and reconcile hidden flags afterwards."""
        result = self._backups.restore(envelope, strategy=strategy, collections_strategy=collections_strategy)
        self.schedule_reconcile()
        return result

    def check_integrity(self, file_type: FileType = "3mf") -> list[IntegrityEntry]:
        """Compare model hashes with the hashes recorded in their sidecars."""
        return check_integrity(self.models_dir, file_type, include_hidden=self._include_hidden)

    def close(self) -> None:
        """Wait for background reconciliation and release the worker thread."""
        self._reconcile_executor.shutdown(wait=True)

    def __enter__(self) -> "CollectionService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _mutate(self, transform: Transform) -> list[Collection]:
        saved = self.queue.submit_and_wait(transform)
        self.schedule_reconcile()
        return saved

    @staticmethod
    def _log_reconcile_failure(future: Future[ReconcileReport]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            LOGGER.warning("Background hidden-flag reconciliation failed: %s", exc)


__all__ = ["CollectionService", "ImportReport"]
