"""Backup and restore of model metadata and the collection store."""

from .archive import archive_name, decode_envelope, read_archive, write_archive
from .models import BackupEnvelope, BackupFile, RestoreResult
from .service import COLLECTIONS_STRATEGIES, RESTORE_STRATEGIES, BackupService

__all__ = [
    "BackupEnvelope",
    "BackupFile",
    "BackupService",
    "COLLECTIONS_STRATEGIES",
    "RESTORE_STRATEGIES",
    "RestoreResult",
    "archive_name",
    "decode_envelope",
    "read_archive",
    "write_archive",
]
