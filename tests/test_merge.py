"""Merge reconciler tests."""

from __future__ import annotations

from modelshelf.state import AUTO_IMPORTED_CATEGORY, Collection
from modelshelf.sync.identity import collection_id_for_relative
from modelshelf.sync.merge import MergeReconciler, is_auto_collection


def _candidate(relative: str, model_ids: list[str], parent_id: str | None = None) -> Collection:
    return Collection(
        id=collection_id_for_relative(relative),
        name=relative.rsplit("/", 1)[-1],
        model_ids=model_ids,
        parent_id=parent_id,
        category=AUTO_IMPORTED_CATEGORY,
    )


def test_new_candidates_are_inserted_unchanged() -> None:
    candidate = _candidate("A", ["m1"])

    merged, summary = MergeReconciler().merge_with_summary([], [candidate])

    assert merged == [candidate]
    assert summary.added == 1


def test_existing_collection_gets_union_of_model_ids() -> None:
    """Ensure members added by hand survive a re-scan."""
    existing = Collection(
        id=collection_id_for_relative("A"),
        name="A (renamed)",
        model_ids=["m1", "hand-added"],
        parent_id="col-manual-parent",
        category="Figures",
    )

    merged = MergeReconciler().merge([existing], [_candidate("A", ["m1", "m2"], parent_id="col_other")])

    assert len(merged) == 1
    assert merged[0].model_ids == ["m1", "hand-added", "m2"]
    assert merged[0].category == AUTO_IMPORTED_CATEGORY
    assert merged[0].parent_id == "col-manual-parent"
    assert merged[0].name == "A (renamed)"


def test_missing_parent_is_filled_from_candidate() -> None:
    existing = _candidate("A/B", ["m1"])
    parent = collection_id_for_relative("A")

    merged = MergeReconciler().merge([existing], [_candidate("A/B", ["m1"], parent_id=parent)])

    assert merged[0].parent_id == parent


def test_merging_twice_is_idempotent() -> None:
    """Ensure a second merge of the same candidates changes nothing."""
    reconciler = MergeReconciler()
    manual = Collection(id="col-123-abcde", name="Favourites", model_ids=["m9"])
    candidates = [_candidate("A", ["m1"]), _candidate("A/B", ["m2"], parent_id=collection_id_for_relative("A"))]

    once = reconciler.merge([manual], candidates)
    twice, summary = reconciler.merge_with_summary(once, candidates)

    assert twice == once
    assert summary.added == 0
    assert summary.updated == 0
    assert summary.unchanged == 2


def test_clear_previous_prunes_auto_collections_before_merging() -> None:
    """Ensure stale derived collections are not resurrected."""
    stale_by_category = Collection(id="col-1-aaaaa", name="Old", category="auto-imported")
    stale_by_prefix = Collection(id=collection_id_for_relative("Gone"), name="Gone", model_ids=["m0"])
    manual = Collection(id="col-2-bbbbb", name="Manual", model_ids=["m5"])

    merged, summary = MergeReconciler().merge_with_summary(
        [stale_by_category, stale_by_prefix, manual],
        [_candidate("A", ["m1"])],
        clear_previous=True,
    )

    assert [collection.name for collection in merged] == ["Manual", "A"]
    assert summary.pruned == 2


def test_is_auto_collection_matches_category_or_prefix() -> None:
    assert is_auto_collection(Collection(id="x", name="x", category="AUTO-IMPORTED"))
    assert is_auto_collection(Collection(id="col_QQ", name="x"))
    assert not is_auto_collection(Collection(id="col-1-abcde", name="x"))
