"""Reading and writing backup envelopes as (optionally gzip-compressed) JSON."""

from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from modelshelf.state.errors import ValidationError

from .models import BackupEnvelope

_GZIP_MAGIC = b"\x1f\x8b"


def archive_name(envelope: BackupEnvelope) -> str:
    """Return the default archive file name for an envelope."""
    stamp = envelope.timestamp.replace(":", "-").replace(".", "-")[:19]
    return f"modelshelf-backup-{stamp}.gz"


def encode_envelope(envelope: BackupEnvelope, *, compress: bool = True) -> bytes:
    """Serialize an envelope to bytes, gzip-compressed unless ``compress`` is false."""
    payload = json.dumps(envelope.to_document(), indent=2, ensure_ascii=False).encode("utf-8")
    return gzip.compress(payload) if compress else payload


def write_archive(envelope: BackupEnvelope, path: Path, *, compress: bool = True) -> Path:
    """Write an envelope to ``path`` and return it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_envelope(envelope, compress=compress))
    return path


def parse_envelope(data: Any) -> BackupEnvelope:
    """Validate a decoded backup document.

    Raises:
        ValidationError: If the document has no ``files`` array or is malformed.
    """
    if not isinstance(data, dict) or not isinstance(data.get("files"), list):
        raise ValidationError("Invalid backup structure: expected an object with a 'files' array.")
    try:
        return BackupEnvelope.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid backup data: {exc}") from exc


def decode_envelope(raw: bytes) -> BackupEnvelope:
    """Parse backup bytes, transparently handling gzip compression.

    Raises:
        ValidationError: If the bytes cannot be decompressed or parsed.
    """
    if raw[:2] == _GZIP_MAGIC:
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError) as exc:
            raise ValidationError(f"Failed to decompress backup file: {exc}") from exc
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Invalid backup file format: {exc}") from exc
    return parse_envelope(data)


def read_archive(path: Path) -> BackupEnvelope:
    """Load a backup envelope from ``path``."""
    return decode_envelope(path.read_bytes())


__all__ = [
    "archive_name",
    "decode_envelope",
    "encode_envelope",
    "parse_envelope",
    "read_archive",
    "write_archive",
]
