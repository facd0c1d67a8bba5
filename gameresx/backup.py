"""
Backup and replace management for image assets.

The original of an asset is preserved in a sidecar file next to it
(<asset>.back). The sidecar's presence is the asset's state:

    PRISTINE  no sidecar, the asset holds its original content
    BACKED    sidecar exists, the asset holds a generated replacement

A sidecar, once created, is never overwritten; only restore removes it.
All operations log and swallow OSError, returning a boolean or summary.
"""

import logging
import os
import shutil
from enum import Enum
from typing import Iterable

from gameresx.config import BACKUP_SUFFIX
from gameresx.models import BackupSummary
from gameresx.scanner import collect_assets

logger = logging.getLogger(__name__)


class AssetState(Enum):
    PRISTINE = "pristine"
    BACKED = "backed"


class BackupEngine:
    """Per-asset backup/replace/restore on top of the sidecar convention."""

    def __init__(self, suffix: str = BACKUP_SUFFIX):
        self.suffix = suffix

    def sidecar_path(self, path: str) -> str:
        return os.fspath(path) + self.suffix

    def state(self, path: str) -> AssetState:
        if os.path.exists(self.sidecar_path(path)):
            return AssetState.BACKED
        return AssetState.PRISTINE

    def has_backup(self, path: str) -> bool:
        return self.state(path) is AssetState.BACKED

    def resolve_original_path(self, path: str) -> str:
        """Return where the true original lives: the sidecar if present, else the asset itself."""
        if self.state(path) is AssetState.BACKED:
            return self.sidecar_path(path)
        return os.fspath(path)

    def _create_sidecar(self, path: str, move: bool) -> bool:
        """Create the sidecar from the asset. Returns False if one already exists.

        This is the only place a sidecar is written.
        """
        sidecar = self.sidecar_path(path)
        if os.path.exists(sidecar):
            return False
        if move:
            os.rename(path, sidecar)
        else:
            shutil.copy2(path, sidecar)
        return True

    def replace(self, path: str, new_content_path: str) -> bool:
        """Swap new content into path, keeping the original in the sidecar.

        PRISTINE: the asset is renamed to become the sidecar.
        BACKED: the current (generated) content is deleted, sidecar untouched.
        """
        try:
            if self._create_sidecar(path, move=True):
                logger.info(f"First replace, original moved to sidecar: {path}")
            else:
                logger.info(f"Sidecar exists, overwriting generated content: {path}")
                os.remove(path)

            shutil.copyfile(new_content_path, path)
            logger.info(f"Replaced: {path}")
            return True
        except OSError as e:
            logger.error(f"Replace failed for {path}: {e}")
            return False

    def restore(self, path: str) -> bool:
        """Put the original back from the sidecar. Returns False if there is none."""
        if self.state(path) is AssetState.PRISTINE:
            logger.info(f"No sidecar, nothing to restore: {path}")
            return False

        try:
            if os.path.exists(path):
                os.remove(path)
            os.rename(self.sidecar_path(path), path)
            logger.info(f"Restored: {path}")
            return True
        except OSError as e:
            logger.error(f"Restore failed for {path}: {e}")
            return False

    def backup(self, path: str) -> bool:
        """Copy the asset to its sidecar. Idempotent: an existing sidecar is a success."""
        try:
            if self._create_sidecar(path, move=False):
                logger.info(f"Backed up: {path}")
            else:
                logger.debug(f"Sidecar already exists, skipping: {path}")
            return True
        except OSError as e:
            logger.error(f"Backup failed for {path}: {e}")
            return False

    def restore_many(self, paths: Iterable[str]) -> int:
        paths = list(paths)
        restored = sum(1 for path in paths if self.restore(path))
        logger.info(f"Restore finished: {restored}/{len(paths)}")
        return restored

    def backup_many(self, paths: Iterable[str]) -> BackupSummary:
        summary = BackupSummary()

        for path in paths:
            summary.total += 1
            if self.has_backup(path):
                summary.skipped += 1
                continue

            if self.backup(path):
                summary.success += 1
            else:
                summary.failed += 1

        logger.info(
            f"Batch backup finished: success={summary.success}, skipped={summary.skipped}, "
            f"failed={summary.failed}, total={summary.total}"
        )
        return summary

    def backup_folder(self, folder_path: str) -> BackupSummary:
        """Back up every asset under folder_path, recursively."""
        images = collect_assets(folder_path)
        logger.info(f"Found {len(images)} images to back up in {folder_path}")
        return self.backup_many(images)
