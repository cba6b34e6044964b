"""Content hashing for primary model files."""

from __future__ import annotations

import hashlib
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


class HashComputer:
    """Compute the content hash recorded in model sidecars (MD5 hex digest)."""

    def compute(self, path: Path) -> str:
        """Return the hex digest of the file contents.

        Raises:
            OSError: If the file cannot be read.
        """
        digest = hashlib.md5()
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()
