"""Derive candidate collections from the folder layout of the models tree."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, get_args

from modelshelf.library.discovery import MetadataScanner
from modelshelf.library.sidecars import is_metadata_file
from modelshelf.state.errors import CollectionNotFoundError, ValidationError
from modelshelf.state.models import AUTO_IMPORTED_CATEGORY, Collection, unique_ids, utcnow

from .identity import collection_id
from .tagging import apply_folder_tag

LOGGER = logging.getLogger(__name__)

Strategy = Literal["smart", "strict", "top-level"]
STRATEGIES: tuple[str, ...] = get_args(Strategy)


@dataclass(slots=True)
class _Folder:
    """Direct contents of one directory, gathered before any decision is made."""

    path: Path
    parent: Path | None
    model_ids: list[str] = field(default_factory=list)
    sidecars: list[Path] = field(default_factory=list)
    children: list[Path] = field(default_factory=list)


@dataclass(slots=True)
class DerivationResult:
    """Outcome of a folder scan.

    Attributes:
        strategy: Strategy used for the scan.
        candidates: Candidate collections, parents before children.
        tagged: Number of sidecars whose tags were updated.
        errors: Per-file problems encountered; none of them aborted the scan.
    """

    strategy: str
    candidates: list[Collection] = field(default_factory=list)
    tagged: int = 0
    errors: list[str] = field(default_factory=list)


class DerivationEngine:
    """Turn a folder tree of model sidecars into candidate collections.

    ``smart`` creates one flat collection per folder holding models directly.
    ``strict`` mirrors the folder hierarchy: a folder is kept when it or any
    descendant holds models, its ``model_ids`` cover its whole subtree, and
    ``parent_id`` points at the nearest kept ancestor. ``top-level`` creates one
    collection per immediate child of the scan root, aggregating every model
    below it.
    """

    def __init__(self, *, auto_tag: bool = True, include_hidden: bool = False) -> None:
        """Initialize the engine.

        Args:
            auto_tag: Whether to add each candidate folder's name to the tags of
                the sidecars it directly contains.
            include_hidden: Whether to descend into dot-directories.
        """
        self.auto_tag = auto_tag
        self.include_hidden = include_hidden

    def derive(self, scan_root: Path, metadata_root: Path, strategy: str = "smart") -> DerivationResult:
        """Scan ``scan_root`` and return candidate collections.

        Candidates are not merged into the store; see :class:`MergeReconciler`.

        Args:
            scan_root: Directory whose subfolders become collections.
            metadata_root: Models root; ids are derived from paths relative to it.
            strategy: One of ``smart``, ``strict``, or ``top-level``.

        Returns:
            DerivationResult: Candidates plus tagging statistics and errors.

        Raises:
            ValidationError: If ``strategy`` is unknown.
            CollectionNotFoundError: If ``scan_root`` is not a directory.
        """
        if strategy not in STRATEGIES:
            raise ValidationError(f"Unknown derivation strategy {strategy!r}; expected one of {', '.join(STRATEGIES)}.")
        scan_root = scan_root.expanduser()
        metadata_root = metadata_root.expanduser()
        if not scan_root.is_dir():
            raise CollectionNotFoundError(f"Directory not found: {scan_root}")

        result = DerivationResult(strategy=strategy)
        folders = self._collect(scan_root, metadata_root, result)

        if strategy == "smart":
            selected = self._select_smart(scan_root, folders, metadata_root, result)
        elif strategy == "strict":
            selected = self._select_strict(scan_root, folders, metadata_root, result)
        else:
            selected = self._select_top_level(scan_root, folders, metadata_root, result)

        if self.auto_tag:
            for folder in selected:
                self._tag_folder(folder, result)

        LOGGER.info(
            "Derived %d candidate collections from %s (strategy=%s, tagged=%d)",
            len(result.candidates),
            scan_root,
            strategy,
            result.tagged,
        )
        return result

    # ------------------------------------------------------------------ #
    # Traversal                                                          #
    # ------------------------------------------------------------------ #

    def _collect(self, scan_root: Path, metadata_root: Path, result: DerivationResult) -> dict[Path, _Folder]:
        """Gather direct contents of every folder, keyed in depth-first pre-order."""
        reader = MetadataScanner(include_hidden=self.include_hidden)
        folders: dict[Path, _Folder] = {}
        worklist: list[tuple[Path, Path | None]] = [(scan_root, None)]

        while worklist:
            directory, parent = worklist.pop()
            folder = _Folder(path=directory, parent=parent)
            folders[directory] = folder
            try:
                with os.scandir(directory) as handle:
                    entries = sorted(handle, key=lambda entry: entry.name)
            except OSError as exc:
                LOGGER.warning("Skipping unreadable directory %s: %s", directory, exc)
                result.errors.append(f"{directory}: {exc}")
                continue

            for entry in entries:
                if not self.include_hidden and entry.name.startswith("."):
                    continue
                path = Path(entry.path)
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                if is_dir:
                    folder.children.append(path)
                elif is_metadata_file(entry.name):
                    record = reader.read_record(path, metadata_root)
                    if record is None:
                        continue
                    folder.model_ids.append(record.id)
                    folder.sidecars.append(path)

            worklist.extend((child, directory) for child in reversed(folder.children))

        result.errors.extend(reader.errors)
        return folders

    # ------------------------------------------------------------------ #
    # Strategies                                                         #
    # ------------------------------------------------------------------ #

    def _select_smart(
        self,
        scan_root: Path,
        folders: dict[Path, _Folder],
        metadata_root: Path,
        result: DerivationResult,
    ) -> list[_Folder]:
        selected = [folder for path, folder in folders.items() if path != scan_root and folder.model_ids]
        for folder in selected:
            result.candidates.append(self._candidate(folder.path, metadata_root, folder.model_ids))
        return selected

    def _select_strict(
        self,
        scan_root: Path,
        folders: dict[Path, _Folder],
        metadata_root: Path,
        result: DerivationResult,
    ) -> list[_Folder]:
        # Pre-order reversed visits every child before its parent.
        subtree_ids: dict[Path, list[str]] = {}
        for path, folder in reversed(folders.items()):
            aggregated = list(folder.model_ids)
            for child in folder.children:
                aggregated.extend(subtree_ids.get(child, []))
            subtree_ids[path] = unique_ids(aggregated)

        nearest_created: dict[Path, str | None] = {}
        selected: list[_Folder] = []
        for path, folder in folders.items():
            inherited = nearest_created.get(folder.parent) if folder.parent is not None else None
            if path == scan_root or not subtree_ids[path]:
                nearest_created[path] = inherited
                continue
            candidate = self._candidate(path, metadata_root, subtree_ids[path], parent_id=inherited)
            nearest_created[path] = candidate.id
            result.candidates.append(candidate)
            selected.append(folder)
        return selected

    def _select_top_level(
        self,
        scan_root: Path,
        folders: dict[Path, _Folder],
        metadata_root: Path,
        result: DerivationResult,
    ) -> list[_Folder]:
        selected: list[_Folder] = []
        for top in folders[scan_root].children:
            aggregated: list[str] = []
            pending = [top]
            while pending:
                current = folders.get(pending.pop())
                if current is None:
                    continue
                aggregated.extend(current.model_ids)
                pending.extend(reversed(current.children))
            model_ids = unique_ids(aggregated)
            if not model_ids:
                continue
            candidate = self._candidate(top, metadata_root, model_ids)
            candidate.description = f"Aggregated {len(model_ids)} models from /{top.name}"
            result.candidates.append(candidate)
            selected.append(folders[top])
        return selected

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _candidate(
        self,
        folder: Path,
        metadata_root: Path,
        model_ids: list[str],
        *,
        parent_id: str | None = None,
    ) -> Collection:
        return Collection(
            id=collection_id(folder, metadata_root),
            name=folder.name,
            model_ids=model_ids,
            parent_id=parent_id,
            category=AUTO_IMPORTED_CATEGORY,
            created=utcnow(),
        )

    def _tag_folder(self, folder: _Folder, result: DerivationResult) -> None:
        for sidecar in folder.sidecars:
            try:
                if apply_folder_tag(sidecar, folder.path.name):
                    result.tagged += 1
            except (OSError, json.JSONDecodeError) as exc:
                LOGGER.warning("Unable to tag %s: %s", sidecar, exc)
                result.errors.append(f"{sidecar}: {exc}")


__all__ = ["DerivationEngine", "DerivationResult", "STRATEGIES", "Strategy"]
