"""JSON read and atomic write helpers shared by the store and sidecar writers."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any:
    """Return the parsed JSON document at ``path``, or ``None`` for an empty file.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If the contents are not valid JSON.
    """
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return None
    return json.loads(raw)


def write_json_atomic(path: Path, data: Any) -> None:
    """Serialize ``data`` to ``path`` through a sibling temp file and a rename.

    Readers never observe a partially written document; a failed write leaves
    the previous contents in place. Each call uses its own temp file, so two
    writers racing on one path end with one complete document (last rename wins).
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


__all__ = ["read_json", "write_json_atomic"]
