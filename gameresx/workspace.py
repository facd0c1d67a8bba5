"""
Workspace: the session object behind the command surface.

Holds the project root, the current selection and the component instances,
and exposes every operation as a method returning an OperationResult. Nothing
raises out of a Workspace method.
"""

import functools
import logging
from pathlib import Path
from typing import Iterable, Optional

from gameresx import gitignore, scanner
from gameresx.backup import BackupEngine
from gameresx.generators.manager import ProviderManager
from gameresx.imaging import ImageMeasurement
from gameresx.models import OperationResult, ProjectConfig
from gameresx.orchestrator import GenerationOrchestrator, ProgressCallback
from gameresx.project import ProjectManager, normalize_path

logger = logging.getLogger(__name__)


def _operation(func):
    """Convert uncaught errors into a failed OperationResult."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs) -> OperationResult:
        try:
            return func(self, *args, **kwargs)
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"{func.__name__} failed: {e}")
            return OperationResult(success=False, message=str(e))

    return wrapper


class Workspace:
    """Session state and operations for one project root."""

    def __init__(
        self,
        root_path,
        providers: Optional[ProviderManager] = None,
        measurement: Optional[ImageMeasurement] = None,
        scan_in_background: bool = True,
    ):
        self.root_path = normalize_path(root_path)
        self.project = ProjectManager(self.root_path, scan_in_background=scan_in_background)
        self.backups = BackupEngine()
        self.orchestrator = GenerationOrchestrator(
            providers=providers,
            measurement=measurement,
            backups=self.backups,
            project_factory=self._project_for,
        )
        self.selected_folder: Optional[str] = None
        self.selected_asset: Optional[str] = None

    def _project_for(self, root_path) -> ProjectManager:
        if normalize_path(root_path) == self.root_path:
            return self.project
        return ProjectManager(root_path)

    def close(self):
        self.project.wait_for_scan()
        self.orchestrator.providers.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_folder(self, folder_path) -> OperationResult:
        folder = normalize_path(folder_path)
        if not Path(folder).is_dir():
            return OperationResult(success=False, message=f"Not a folder: {folder}")
        self.selected_folder = folder
        self.selected_asset = None
        return OperationResult(success=True, data=folder)

    def select_asset(self, asset_path) -> OperationResult:
        asset = normalize_path(asset_path)
        if not Path(asset).is_file():
            return OperationResult(success=False, message=f"Not a file: {asset}")
        self.selected_asset = asset
        self.selected_folder = str(Path(asset).parent)
        return OperationResult(success=True, data=asset)

    # ------------------------------------------------------------------
    # Filesystem views
    # ------------------------------------------------------------------

    @_operation
    def scan_directory(self) -> OperationResult:
        tree = scanner.scan_directory(self.root_path)
        return OperationResult(success=True, data=tree)

    @_operation
    def list_images(self, folder_path=None) -> OperationResult:
        folder = normalize_path(folder_path) if folder_path else (self.selected_folder or self.root_path)
        images = scanner.list_images(folder)
        return OperationResult(success=True, message=f"{len(images)} images", data=images)

    # ------------------------------------------------------------------
    # Configuration and metadata
    # ------------------------------------------------------------------

    @_operation
    def load_config(self) -> OperationResult:
        return OperationResult(success=True, data=self.project.load_config())

    @_operation
    def save_config(self, config: ProjectConfig) -> OperationResult:
        self.project.save_config(config)
        return OperationResult(success=True, message="Project config saved")

    @_operation
    def refresh_statistics(self) -> OperationResult:
        return OperationResult(success=True, data=self.project.refresh_statistics())

    @_operation
    def update_settings(self, **settings) -> OperationResult:
        return OperationResult(success=True, message="Settings updated", data=self.project.update_settings(**settings))

    @_operation
    def add_tag_type(self, label: str) -> OperationResult:
        return OperationResult(success=True, data=self.project.add_tag_type(label))

    @_operation
    def update_image_metadata(self, image_path, **changes) -> OperationResult:
        meta = self.project.update_image_metadata(image_path, **changes)
        return OperationResult(success=True, message="Metadata updated", data=meta)

    @_operation
    def update_folder_metadata(self, folder_path, **changes) -> OperationResult:
        meta = self.project.update_folder_metadata(folder_path, **changes)
        return OperationResult(success=True, message="Folder metadata updated", data=meta)

    @_operation
    def batch_update_folder(self, folder_path, tag_type: str) -> OperationResult:
        count = self.project.batch_update_folder_assets(folder_path, tag_type)
        return OperationResult(success=True, message=f"Tagged {count} images as {tag_type}", data=count)

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    @_operation
    def backup(self, asset_path) -> OperationResult:
        ok = self.backups.backup(normalize_path(asset_path))
        return OperationResult(success=ok, message="Backed up" if ok else "Backup failed")

    @_operation
    def backup_many(self, paths: Iterable[str]) -> OperationResult:
        summary = self.backups.backup_many(normalize_path(p) for p in paths)
        return OperationResult(success=summary.failed == 0, message=_backup_message(summary), data=summary)

    @_operation
    def backup_folder(self, folder_path=None) -> OperationResult:
        folder = normalize_path(folder_path) if folder_path else self.root_path
        summary = self.backups.backup_folder(folder)
        return OperationResult(success=summary.failed == 0, message=_backup_message(summary), data=summary)

    @_operation
    def restore(self, asset_path) -> OperationResult:
        ok = self.backups.restore(normalize_path(asset_path))
        return OperationResult(success=ok, message="Restored" if ok else "No backup to restore")

    @_operation
    def restore_many(self, paths: Iterable[str]) -> OperationResult:
        paths = [normalize_path(p) for p in paths]
        restored = self.backups.restore_many(paths)
        return OperationResult(success=True, message=f"Restored {restored}/{len(paths)} images", data=restored)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        asset_path,
        custom_prompt: Optional[str] = None,
        model_override: Optional[str] = None,
    ) -> OperationResult:
        outcome = self.orchestrator.generate_and_replace(
            self.root_path, asset_path, custom_prompt=custom_prompt, model_override=model_override
        )
        return OperationResult(success=outcome.success, message=outcome.message, data=outcome)

    def generate_folder(
        self,
        paths: Iterable[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> OperationResult:
        summary = self.orchestrator.generate_folder_assets(self.root_path, paths, on_progress=on_progress)
        return OperationResult(
            success=summary.failed == 0,
            message=f"{summary.success} succeeded, {summary.failed} failed",
            data=summary,
        )

    # ------------------------------------------------------------------
    # .gitignore
    # ------------------------------------------------------------------

    @_operation
    def check_gitignore(self) -> OperationResult:
        needs_config, path = gitignore.check_project(Path(self.root_path))
        return OperationResult(success=True, data={"needs_config": needs_config, "gitignore_path": path})

    @_operation
    def fix_gitignore(self) -> OperationResult:
        needs_config, path = gitignore.check_project(Path(self.root_path))
        if path is None:
            return OperationResult(success=False, message="No .gitignore found")
        if not needs_config:
            return OperationResult(success=True, message=f"{path} already has the rules", data=path)
        gitignore.add_rules(path)
        return OperationResult(success=True, message=f"Rules added to {path}", data=path)


def _backup_message(summary) -> str:
    return (
        f"Backed up {summary.success}, skipped {summary.skipped}, "
        f"failed {summary.failed} of {summary.total}"
    )
