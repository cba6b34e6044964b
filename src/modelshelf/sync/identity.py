"""Collection identifiers derived from folder paths or generated for manual collections."""

from __future__ import annotations

import base64
import binascii
import os
import secrets
import time
from pathlib import Path, PurePosixPath

from modelshelf.state.errors import ValidationError

COLLECTION_ID_PREFIX = "col_"
MANUAL_ID_PREFIX = "col"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def collection_id_for_relative(relative_path: str) -> str:
    """Return the folder-derived id for a path relative to the models root.

    The id depends only on the relative path, never on where the models root
    lives, so every process and platform computes the same value.

    Args:
        relative_path: Folder path relative to the models root, either separator.

    Returns:
        str: ``col_`` followed by the URL-safe, unpadded base64 of the path.
    """
    normalized = relative_path.replace("\\", "/")
    encoded = base64.b64encode(normalized.encode("utf-8")).decode("ascii")
    return COLLECTION_ID_PREFIX + encoded.rstrip("=").replace("+", "-").replace("/", "_")


def collection_id(folder: Path, metadata_root: Path) -> str:
    """Return the folder-derived id of ``folder`` below ``metadata_root``."""
    relative = os.path.relpath(folder, metadata_root)
    if relative == ".":
        relative = ""
    return collection_id_for_relative(relative.replace(os.sep, "/"))


def is_folder_derived(value: str | None) -> bool:
    """Return whether ``value`` carries the folder-derived id prefix."""
    return isinstance(value, str) and value.startswith(COLLECTION_ID_PREFIX)


def decode_collection_id(value: str) -> str | None:
    """Return the relative folder path encoded in a folder-derived id.

    Returns:
        str | None: The ``/``-separated relative path, or ``None`` when ``value``
        is not a decodable folder-derived id.
    """
    if not is_folder_derived(value):
        return None
    encoded = value[len(COLLECTION_ID_PREFIX) :].replace("-", "+").replace("_", "/")
    encoded += "=" * (-len(encoded) % 4)
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def make_manual_id(prefix: str = MANUAL_ID_PREFIX) -> str:
    """Return an opaque id for a hand-made collection (``col-<stamp>-<random>``)."""
    stamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{prefix}-{stamp}-{suffix}"


def validate_relative_path(value: str) -> str:
    """Normalize a caller-supplied relative folder path.

    Args:
        value: Relative path using either separator.

    Returns:
        str: The path with ``/`` separators and no leading or trailing slashes.

    Raises:
        ValidationError: If the path is absolute or contains ``..`` segments.
    """
    normalized = value.strip().replace("\\", "/")
    if normalized.startswith("/") or PurePosixPath(normalized).is_absolute() or ":" in normalized.split("/")[0]:
        raise ValidationError(f"Expected a relative folder path, got {value!r}")
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if ".." in parts:
        raise ValidationError(f"Path traversal is not allowed: {value!r}")
    return "/".join(parts)


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


__all__ = [
    "COLLECTION_ID_PREFIX",
    "collection_id",
    "collection_id_for_relative",
    "decode_collection_id",
    "is_folder_derived",
    "make_manual_id",
    "validate_relative_path",
]
