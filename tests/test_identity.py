"""Collection identifier tests."""

from __future__ import annotations

import base64
import re
from pathlib import Path

import pytest

from modelshelf.state import ValidationError
from modelshelf.sync.identity import (
    collection_id,
    collection_id_for_relative,
    decode_collection_id,
    is_folder_derived,
    make_manual_id,
    validate_relative_path,
)


def test_folder_id_is_urlsafe_unpadded_base64_of_relative_path() -> None:
    relative = "Figures/Dragons?"
    expected = base64.b64encode(relative.encode()).decode().rstrip("=").replace("+", "-").replace("/", "_")

    assert collection_id_for_relative(relative) == f"col_{expected}"
    assert "=" not in collection_id_for_relative("a")


def test_folder_id_ignores_separator_style() -> None:
    assert collection_id_for_relative("A\\B") == collection_id_for_relative("A/B")


def test_folder_id_is_independent_of_root_location(tmp_path: Path) -> None:
    """Ensure the same relative folder yields the same id under different roots.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    first = tmp_path / "one" / "models"
    second = tmp_path / "elsewhere" / "deeper" / "models"

    assert collection_id(first / "A" / "B", first) == collection_id(second / "A" / "B", second)
    assert collection_id(first / "A" / "B", first) == collection_id_for_relative("A/B")


def test_decode_reverses_encoding() -> None:
    for relative in ("A", "A/B", "Ünïcode/Ørb", "a+b/c"):
        assert decode_collection_id(collection_id_for_relative(relative)) == relative


def test_decode_rejects_manual_and_garbage_ids() -> None:
    assert decode_collection_id("col-abc-12345") is None
    assert decode_collection_id("col_!!!") is None


def test_manual_ids_have_expected_shape_and_differ() -> None:
    first, second = make_manual_id(), make_manual_id()

    assert re.fullmatch(r"col-[0-9a-z]+-[0-9a-z]{5}", first)
    assert first != second
    assert not is_folder_derived(first)


@pytest.mark.parametrize("value", ["../escape", "A/../../B", "/etc", "C:/Windows", "\\\\server\\share"])
def test_validate_relative_path_rejects_escapes(value: str) -> None:
    with pytest.raises(ValidationError):
        validate_relative_path(value)


def test_validate_relative_path_normalizes_separators() -> None:
    assert validate_relative_path("A\\B/") == "A/B"
    assert validate_relative_path("./A//B") == "A/B"
    assert validate_relative_path("") == ""
