"""Merge derived candidate collections into the stored collections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from modelshelf.state.models import AUTO_IMPORTED_CATEGORY, Collection, utcnow
from modelshelf.state.queue import Transform

from .identity import is_folder_derived

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeSummary:
    """Counts describing one merge pass."""

    added: int = 0
    updated: int = 0
    unchanged: int = 0
    pruned: int = 0


def is_auto_collection(collection: Collection) -> bool:
    """Return whether a collection is owned by the derivation pipeline.

    Matches the auto-imported category (case-insensitive) or the folder-derived
    id prefix, which also catches older derived collections without a category.
    """
    return collection.is_auto_imported or is_folder_derived(collection.id)


class MergeReconciler:
    """Fold candidate collections into the store without losing members."""

    def merge(
        self,
        collections: Sequence[Collection],
        candidates: Iterable[Collection],
        *,
        clear_previous: bool = False,
    ) -> list[Collection]:
        """Return ``collections`` with ``candidates`` merged in.

        Args:
            collections: Current store contents.
            candidates: Collections produced by the derivation engine.
            clear_previous: Drop every auto-derived collection before merging.

        Returns:
            list[Collection]: Updated collections.
        """
        merged, _ = self.merge_with_summary(collections, candidates, clear_previous=clear_previous)
        return merged

    def merge_with_summary(
        self,
        collections: Sequence[Collection],
        candidates: Iterable[Collection],
        *,
        clear_previous: bool = False,
    ) -> tuple[list[Collection], MergeSummary]:
        """Merge like :meth:`merge` and also report what changed."""
        summary = MergeSummary()
        updated = list(collections)

        if clear_previous:
            kept = [collection for collection in updated if not is_auto_collection(collection)]
            summary.pruned = len(updated) - len(kept)
            updated = kept

        index = {collection.id: position for position, collection in enumerate(updated)}
        for candidate in candidates:
            position = index.get(candidate.id)
            if position is None:
                index[candidate.id] = len(updated)
                updated.append(candidate.model_copy(deep=True))
                summary.added += 1
                continue

            existing = updated[position]
            model_ids = list(dict.fromkeys([*existing.model_ids, *candidate.model_ids]))
            parent_id = existing.parent_id or candidate.parent_id
            if (
                model_ids == existing.model_ids
                and existing.category == AUTO_IMPORTED_CATEGORY
                and parent_id == existing.parent_id
            ):
                summary.unchanged += 1
                continue

            updated[position] = existing.model_copy(
                update={
                    "model_ids": model_ids,
                    "category": AUTO_IMPORTED_CATEGORY,
                    "parent_id": parent_id,
                    "last_modified": utcnow(),
                }
            )
            summary.updated += 1

        LOGGER.info(
            "Merged candidates: added=%d updated=%d unchanged=%d pruned=%d",
            summary.added,
            summary.updated,
            summary.unchanged,
            summary.pruned,
        )
        return updated, summary

    def as_transform(self, candidates: Sequence[Collection], *, clear_previous: bool = False) -> Transform:
        """Return a mutation-queue transform applying this merge."""

        def _transform(collections: list[Collection]) -> list[Collection]:
            return self.merge(collections, candidates, clear_previous=clear_previous)

        return _transform


__all__ = ["MergeReconciler", "MergeSummary", "is_auto_collection"]
