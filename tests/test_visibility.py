"""Hidden-flag reconciliation tests."""

from __future__ import annotations

import json
from pathlib import Path

from modelshelf.state import Collection
from modelshelf.sync.visibility import HiddenFlagReconciler, member_ids


def _sidecar(path: Path, model_id: str, **fields: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"id": model_id, **fields}), encoding="utf-8")
    return path


def _hidden(path: Path) -> object:
    return json.loads(path.read_text(encoding="utf-8")).get("hidden")


def test_membership_sets_and_clears_hidden_flag(tmp_path: Path) -> None:
    """Ensure hidden follows membership through add and removal.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    sidecar = _sidecar(tmp_path / "Figures" / "m1-munchie.json", "m1", hidden=False, name="Keep me")
    reconciler = HiddenFlagReconciler()

    report = reconciler.reconcile([Collection(id="C", name="C", model_ids=["m1"])], tmp_path)

    assert _hidden(sidecar) is True
    assert report.hidden == ["m1"]
    assert json.loads(sidecar.read_text(encoding="utf-8"))["name"] == "Keep me"

    report = reconciler.reconcile([], tmp_path)

    assert _hidden(sidecar) is False
    assert report.shown == ["m1"]


def test_matching_flags_are_not_rewritten(tmp_path: Path) -> None:
    shown = _sidecar(tmp_path / "a-munchie.json", "a")
    hidden = _sidecar(tmp_path / "b-munchie.json", "b", hidden=True)
    before = (shown.read_text(encoding="utf-8"), hidden.read_text(encoding="utf-8"))

    report = HiddenFlagReconciler().reconcile([Collection(id="C", name="C", model_ids=["b"])], tmp_path)

    assert (shown.read_text(encoding="utf-8"), hidden.read_text(encoding="utf-8")) == before
    assert report.changed == 0
    assert report.unchanged == 2


def test_stl_sidecars_are_reconciled_too(tmp_path: Path) -> None:
    sidecar = _sidecar(tmp_path / "part-stl-munchie.json", "stl-1")

    HiddenFlagReconciler().reconcile([Collection(id="C", name="C", model_ids=["stl-1"])], tmp_path)

    assert _hidden(sidecar) is True


def test_corrupt_sidecar_does_not_stop_the_pass(tmp_path: Path) -> None:
    (tmp_path / "bad-munchie.json").write_text("not json", encoding="utf-8")
    good = _sidecar(tmp_path / "good-munchie.json", "good")

    report = HiddenFlagReconciler().reconcile([Collection(id="C", name="C", model_ids=["good"])], tmp_path)

    assert _hidden(good) is True
    assert len(report.errors) == 1


def test_member_ids_unions_all_collections() -> None:
    collections = [
        Collection(id="a", name="a", model_ids=["m1", "m2"]),
        Collection(id="b", name="b", model_ids=["m2", "m3"]),
    ]

    assert member_ids(collections) == {"m1", "m2", "m3"}
