"""Collection store tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from modelshelf.state import AUTO_IMPORTED_CATEGORY, Collection, CollectionStore, StoreError


def _collection(collection_id: str = "col-1", **fields: object) -> Collection:
    """Return a sample collection.

    Args:
        collection_id: Identifier for the collection.
        **fields: Additional field overrides.

    Returns:
        Collection: Collection populated with a single model.
    """
    return Collection(id=collection_id, name=fields.pop("name", "Sample"), model_ids=["m1"], **fields)


def test_missing_file_loads_as_empty_store(tmp_path: Path) -> None:
    """Ensure a store without a backing file is empty rather than an error.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = CollectionStore(tmp_path / "data" / "collections.json")

    assert store.load() == []


def test_save_writes_array_form_and_round_trips(tmp_path: Path) -> None:
    """Ensure save emits the camelCase array form and load restores it.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = CollectionStore(tmp_path / "data" / "collections.json")
    store.save([_collection(category=AUTO_IMPORTED_CATEGORY, parent_id="col_QQ")])

    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert isinstance(raw, list)
    assert raw[0]["modelIds"] == ["m1"]
    assert raw[0]["parentId"] == "col_QQ"
    assert not list(store.path.parent.glob("*.tmp"))

    loaded = store.load()
    assert [item.id for item in loaded] == ["col-1"]
    assert loaded[0].is_auto_imported


def test_load_accepts_legacy_object_form(tmp_path: Path) -> None:
    """Ensure the ``{"collections": [...]}`` document is still readable.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    path = tmp_path / "collections.json"
    path.write_text(
        json.dumps({"collections": [{"id": "a", "name": "A", "modelIds": ["m1", "m1", ""]}]}),
        encoding="utf-8",
    )

    loaded = CollectionStore(path).load()

    assert len(loaded) == 1
    assert loaded[0].model_ids == ["m1"]


def test_unknown_fields_pass_through(tmp_path: Path) -> None:
    """Ensure fields the engine does not model survive a load/save cycle.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    path = tmp_path / "collections.json"
    path.write_text(
        json.dumps([{"id": "a", "name": "A", "type": "manual", "buildPlates": [1, 2]}]),
        encoding="utf-8",
    )
    store = CollectionStore(path)

    store.save(store.load())

    document = json.loads(path.read_text(encoding="utf-8"))[0]
    assert document["type"] == "manual"
    assert document["buildPlates"] == [1, 2]


def test_corrupt_store_raises_store_error(tmp_path: Path) -> None:
    """Ensure unparseable JSON is reported instead of silently dropped.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    path = tmp_path / "collections.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        CollectionStore(path).load()


def test_empty_file_loads_as_empty_store(tmp_path: Path) -> None:
    path = tmp_path / "collections.json"
    path.write_text("   \n", encoding="utf-8")

    assert CollectionStore(path).load() == []


@pytest.mark.parametrize(
    "document",
    [
        {"items": [{"id": "keep", "name": "Keep"}]},
        {"collections": {"id": "keep", "name": "Keep"}},
        "keep",
        42,
        [{"id": "keep", "name": "Keep"}, "stray"],
    ],
)
def test_unexpected_store_layout_raises_store_error(tmp_path: Path, document: object) -> None:
    """Ensure valid JSON of the wrong shape is refused rather than read as empty.

    Args:
        tmp_path: Temporary directory provided by pytest.
        document: JSON value written to the store file.
    """
    path = tmp_path / "collections.json"
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(StoreError):
        CollectionStore(path).load()
