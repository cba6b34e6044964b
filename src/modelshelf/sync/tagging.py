"""Best-effort folder tagging of model sidecars."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from modelshelf.library.io import read_json, write_json_atomic
from modelshelf.library.sidecars import protect_model_write
from modelshelf.state.models import utcnow

LOGGER = logging.getLogger(__name__)


def merge_tags(existing: Iterable[str], additions: Iterable[str]) -> list[str]:
    """Append ``additions`` to ``existing``, ignoring case when de-duplicating.

    The casing of the first occurrence of each tag wins.
    """
    merged: list[str] = []
    seen: set[str] = set()
    for tag in [*existing, *additions]:
        if not isinstance(tag, str) or not tag.strip():
            continue
        key = tag.casefold()
        if key in seen:
            continue
        seen.add(key)
        merged.append(tag)
    return merged


def apply_folder_tag(sidecar: Path, tag: str) -> bool:
    """Add ``tag`` to a sidecar's tag list, writing only when the list changes.

    Args:
        sidecar: Metadata file to update.
        tag: Tag to append, usually the containing folder's name.

    Returns:
        bool: ``True`` when the file was rewritten.

    Raises:
        OSError: If the file cannot be read or written.
        json.JSONDecodeError: If the file does not hold valid JSON.
    """
    data = read_json(sidecar)
    if not isinstance(data, dict):
        return False
    current = data.get("tags")
    existing = [value for value in current if isinstance(value, str)] if isinstance(current, list) else []
    combined = merge_tags(existing, [tag])
    if combined == existing and isinstance(current, list):
        return False

    data["tags"] = combined
    data["lastModified"] = utcnow().isoformat().replace("+00:00", "Z")
    write_json_atomic(protect_model_write(sidecar), data)
    LOGGER.debug("Tagged %s with %r", sidecar, tag)
    return True


__all__ = ["apply_folder_tag", "merge_tags"]
