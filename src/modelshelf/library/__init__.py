"""Access to the on-disk model library: sidecars, hashing, and walks."""

from .detectors import HashComputer
from .discovery import MetadataScanner, iter_metadata_files, iter_primary_models, relative_posix
from .integrity import check_integrity
from .io import read_json, write_json_atomic
from .models import IntegrityEntry, ModelRecord
from .sidecars import companion_metadata_path, is_metadata_file, protect_model_write

__all__ = [
    "HashComputer",
    "IntegrityEntry",
    "MetadataScanner",
    "ModelRecord",
    "check_integrity",
    "companion_metadata_path",
    "is_metadata_file",
    "iter_metadata_files",
    "iter_primary_models",
    "protect_model_write",
    "read_json",
    "relative_posix",
    "write_json_atomic",
]
