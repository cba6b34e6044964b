"""Manual collection mutation tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from modelshelf.state import AUTO_IMPORTED_CATEGORY, Collection, CollectionNotFoundError, ValidationError
from modelshelf.sync.identity import collection_id_for_relative
from modelshelf.sync.mutations import (
    CollectionDraft,
    add_models_transform,
    create_collection_folder,
    delete_transform,
    sanitize_folder_name,
    upsert_transform,
)


@pytest.mark.parametrize("name", [None, "", "   "])
def test_draft_requires_name(name: object) -> None:
    with pytest.raises(ValidationError, match="Name is required"):
        CollectionDraft.build(name=name)


def test_draft_normalizes_root_parent_and_model_ids() -> None:
    draft = CollectionDraft.build(name="Shelf", parent_id="root", model_ids=["m1", "m1", "", "m2"])

    assert draft.parent_id is None
    assert draft.model_ids == ["m1", "m2"]


def test_upsert_updates_in_place_and_keeps_unset_fields() -> None:
    """Ensure an update replaces edited fields but leaves category, tags, and extras alone."""
    existing = Collection(
        id="c1",
        name="Old",
        category="Figures",
        tags=["keep"],
        model_ids=["m1"],
        type="manual",
    )
    draft = CollectionDraft.build(name="New", model_ids=["m2"])

    updated = upsert_transform(draft, "c1")([existing])

    assert len(updated) == 1
    assert updated[0].name == "New"
    assert updated[0].model_ids == ["m2"]
    assert updated[0].category == "Figures"
    assert updated[0].tags == ["keep"]
    assert updated[0].to_document()["type"] == "manual"
    assert updated[0].last_modified is not None


def test_upsert_appends_new_collection() -> None:
    draft = CollectionDraft.build(name="Fresh", tags=["a"])

    updated = upsert_transform(draft, "col-new-00000")([Collection(id="other", name="Other")])

    assert [collection.id for collection in updated] == ["other", "col-new-00000"]
    assert updated[1].tags == ["a"]
    assert updated[1].created is not None


def test_delete_missing_collection_raises_not_found() -> None:
    with pytest.raises(CollectionNotFoundError):
        delete_transform("ghost")([Collection(id="c1", name="c1")])


def test_add_models_creates_or_extends_folder_collection() -> None:
    folder_id = collection_id_for_relative("Uploads/Today")
    transform = add_models_transform("Uploads\\Today", ["m1", "m2"])

    created = transform([])
    assert created[0].id == folder_id
    assert created[0].name == "Today"
    assert created[0].category == AUTO_IMPORTED_CATEGORY

    extended = add_models_transform("Uploads/Today", ["m2", "m3"])(created)
    assert extended[0].model_ids == ["m1", "m2", "m3"]


def test_add_models_rejects_root_and_traversal() -> None:
    with pytest.raises(ValidationError):
        add_models_transform("", ["m1"])
    with pytest.raises(ValidationError):
        add_models_transform("../outside", ["m1"])


def test_create_collection_folder_nests_under_folder_parent(tmp_path: Path) -> None:
    """Ensure on-disk creation maps onto the id a later scan will derive.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    (tmp_path / "Figures").mkdir()
    parent = Collection(id=collection_id_for_relative("Figures"), name="Figures")

    folder, folder_id = create_collection_folder(tmp_path, "Dragons & Drakes!", parent)

    assert folder == tmp_path / "Figures" / "Dragons  Drakes"
    assert folder.is_dir()
    assert folder_id == collection_id_for_relative("Figures/Dragons  Drakes")


def test_create_collection_folder_uses_root_for_manual_parent(tmp_path: Path) -> None:
    folder, _ = create_collection_folder(tmp_path, "Loose", Collection(id="col-1-abcde", name="Manual"))

    assert folder == tmp_path / "Loose"


def test_sanitize_folder_name_rejects_empty_result(tmp_path: Path) -> None:
    assert sanitize_folder_name("  a/b:c ") == "abc"
    with pytest.raises(ValidationError):
        create_collection_folder(tmp_path, "???")
