"""Keep each model's ``hidden`` flag in line with collection membership."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from modelshelf.library.discovery import MetadataScanner
from modelshelf.library.io import read_json, write_json_atomic
from modelshelf.library.models import ModelRecord
from modelshelf.library.sidecars import protect_model_write
from modelshelf.state.models import Collection, utcnow

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileReport:
    """Outcome of a hidden-flag reconciliation pass.

    Attributes:
        hidden: Model ids whose flag was switched on.
        shown: Model ids whose flag was switched off.
        unchanged: Number of records that already matched.
        errors: Per-file failures; the pass continued past each of them.
    """

    hidden: list[str] = field(default_factory=list)
    shown: list[str] = field(default_factory=list)
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        """Return the number of sidecars rewritten."""
        return len(self.hidden) + len(self.shown)


def member_ids(collections: Iterable[Collection]) -> set[str]:
    """Return every model id that belongs to at least one collection."""
    members: set[str] = set()
    for collection in collections:
        members.update(model_id for model_id in collection.model_ids if model_id)
    return members


class HiddenFlagReconciler:
    """Derive ``hidden`` from membership: members are hidden, everyone else shown."""

    def __init__(self, scanner: MetadataScanner | None = None) -> None:
        self._scanner = scanner or MetadataScanner()

    def reconcile(self, collections: Iterable[Collection], models_dir: Path) -> ReconcileReport:
        """Rewrite the sidecars under ``models_dir`` whose flag disagrees with membership.

        Args:
            collections: Current store contents.
            models_dir: Models root walked for sidecars.

        Returns:
            ReconcileReport: Which models flipped, and any per-file errors.
        """
        members = member_ids(collections)
        report = ReconcileReport()
        for record in self._scanner.scan(models_dir):
            self._reconcile_record(record, record.id in members, report)
        report.errors.extend(self._scanner.errors)

        LOGGER.info(
            "Reconciled hidden flags under %s: hidden=%d shown=%d unchanged=%d errors=%d",
            models_dir,
            len(report.hidden),
            len(report.shown),
            report.unchanged,
            len(report.errors),
        )
        return report

    def _reconcile_record(self, record: ModelRecord, should_hide: bool, report: ReconcileReport) -> None:
        if record.hidden == should_hide:
            report.unchanged += 1
            return
        try:
            data = read_json(record.path)
            if not isinstance(data, dict):
                return
            data["hidden"] = should_hide
            data["lastModified"] = utcnow().isoformat().replace("+00:00", "Z")
            write_json_atomic(protect_model_write(record.path), data)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Unable to update hidden flag for %s: %s", record.path, exc)
            report.errors.append(f"{record.path}: {exc}")
            return
        (report.hidden if should_hide else report.shown).append(record.id)


__all__ = ["HiddenFlagReconciler", "ReconcileReport", "member_ids"]
