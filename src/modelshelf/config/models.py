"""Configuration models describing modelshelf settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ModelshelfBaseModel(BaseModel):
    """Shared configuration for modelshelf settings models."""

    model_config = ConfigDict(extra="forbid")


class LibrarySettings(ModelshelfBaseModel):
    """Locations of the models tree and the collection store.

    Attributes:
        models_dir: Root folder holding model files and their sidecars.
        collections_file: JSON file persisting the collections.
    """

    models_dir: Path = Path("./models")
    collections_file: Path = Path("./data/collections.json")


class ScanSettings(ModelshelfBaseModel):
    """Folder scanning defaults for auto-import.

    Attributes:
        default_strategy: Derivation strategy used when none is given.
        auto_tag: Whether derived folders tag the sidecars they contain.
        skip_hidden: Whether dot-directories are ignored during walks.
    """

    default_strategy: Literal["smart", "strict", "top-level"] = "smart"
    auto_tag: bool = True
    skip_hidden: bool = True


class BackupSettings(ModelshelfBaseModel):
    """Defaults for backup archives and restores.

    Attributes:
        default_strategy: File matching strategy for restores.
        collections_strategy: How backed-up collections are applied.
        compress: Whether archives are gzip-compressed.
    """

    default_strategy: Literal["hash-match", "path-match", "force"] = "hash-match"
    collections_strategy: Literal["merge", "replace"] = "merge"
    compress: bool = True


class LoggingSettings(ModelshelfBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file; rotated by size when set.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[Path] = None
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(ModelshelfBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class ModelshelfConfig(ModelshelfBaseModel):
    """Top-level configuration struct for modelshelf.

    Attributes:
        library: Library locations.
        scan: Auto-import scanning settings.
        backup: Backup and restore settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    library: LibrarySettings = Field(default_factory=LibrarySettings)
    scan: ScanSettings = Field(default_factory=ScanSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "BackupSettings",
    "CLIOptions",
    "LibrarySettings",
    "LoggingSettings",
    "ModelshelfBaseModel",
    "ModelshelfConfig",
    "ScanSettings",
]
