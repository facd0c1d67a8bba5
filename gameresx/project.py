"""
Project configuration management for GameResX.

Each mutator runs its own load/modify/save cycle against the JSON document on
disk instead of holding a long-lived in-memory copy. There is no locking, so
two mutators racing on the same root resolve as last-save-wins.
"""

import json
import logging
import os
import shutil
import threading
import time
from dataclasses import fields, replace
from pathlib import Path
from typing import Optional

from gameresx.config import (
    CONFIG_VERSION,
    PROJECT_CONFIG_FILE,
    PROJECT_DIR_NAME,
    is_hidden,
    is_supported_image,
)
from gameresx.models import FolderMetadata, ImageMetadata, ProjectConfig, Statistics
from gameresx.scanner import scan_statistics

logger = logging.getLogger(__name__)

_IMAGE_FIELDS = {f.name for f in fields(ImageMetadata)} - {"extra"}
_FOLDER_FIELDS = {f.name for f in fields(FolderMetadata)} - {"extra"}


def normalize_path(path) -> str:
    """Key form used for metadata maps: absolute, normalised, str."""
    return os.path.abspath(os.fspath(path))


def _check_fields(changes: dict, allowed: set, kind: str) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown {kind} field(s): {', '.join(sorted(unknown))}")


class ProjectManager:
    """Loads, migrates and saves the project document and its metadata maps."""

    def __init__(self, project_dir, scan_in_background: bool = True):
        """Initialize for a project root directory."""
        self.project_dir = Path(normalize_path(project_dir))
        self.scan_in_background = scan_in_background
        self._scan_thread: Optional[threading.Thread] = None

    @property
    def root_path(self) -> str:
        return str(self.project_dir)

    @property
    def config_dir(self) -> Path:
        return self.project_dir / PROJECT_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.config_dir / PROJECT_CONFIG_FILE

    def is_initialized(self) -> bool:
        return self.config_path.exists()

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load_config(self) -> ProjectConfig:
        """Load the project document, creating, migrating or recovering it as needed."""
        if not self.config_path.exists():
            return self._create_config()

        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = json.load(f)
            config = ProjectConfig.from_dict(data, root_path=self.root_path)
        except (ValueError, TypeError, AttributeError) as e:
            # json.JSONDecodeError is a ValueError; read errors (OSError) propagate
            logger.error(f"Error loading project config {self.config_path}: {e}")
            return self._recover_corrupt_config()

        if ProjectConfig.needs_migration(data):
            logger.info(
                f"Config version {data.get('version')!r} or sections out of date, upgrading to {CONFIG_VERSION}"
            )
            config.version = CONFIG_VERSION
            config.root_path = self.root_path
            self.save_config(config)
            return config

        if config.root_path != self.root_path:
            logger.info(f"Project moved from {config.root_path} to {self.root_path}")
            config.root_path = self.root_path
            self.save_config(config)

        return config

    def save_config(self, config: ProjectConfig) -> None:
        """Persist the document under config.root_path. Errors propagate."""
        config_dir = Path(config.root_path) / PROJECT_DIR_NAME
        config_dir.mkdir(parents=True, exist_ok=True)
        config.save(config_dir / PROJECT_CONFIG_FILE)
        logger.debug(f"Project config saved: {config_dir / PROJECT_CONFIG_FILE}")

    def _create_config(self) -> ProjectConfig:
        logger.info(f"Creating new project config for {self.root_path}")
        config = ProjectConfig.create_default(self.root_path)
        self.save_config(config)

        if self.scan_in_background:
            self._scan_thread = threading.Thread(
                target=self._background_scan,
                name="gameresx-stats-scan",
                daemon=True,
            )
            self._scan_thread.start()

        return config

    def _recover_corrupt_config(self) -> ProjectConfig:
        """Keep a timestamped copy of the unreadable document and start over with defaults."""
        backup_path = self.config_path.with_name(
            f"{PROJECT_CONFIG_FILE}.backup.{int(time.time() * 1000)}"
        )
        try:
            shutil.copy2(self.config_path, backup_path)
            logger.warning(f"Corrupt config backed up to {backup_path}")
        except OSError as e:
            logger.error(f"Failed to back up corrupt config: {e}")

        config = ProjectConfig.create_default(self.root_path)
        self.save_config(config)
        return config

    def _background_scan(self) -> None:
        """Scan statistics and patch them into the saved document."""
        logger.debug("Starting background statistics scan")
        try:
            stats = scan_statistics(self.root_path)
            config = ProjectConfig.load(self.config_path, root_path=self.root_path)
            stats.completed_images = config.count_completed()
            config.statistics = stats
            self.save_config(config)
            logger.info(
                f"Background statistics scan complete: {stats.total_images} images, "
                f"{len(stats.empty_folders)} empty folders"
            )
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Background statistics scan failed: {e}")

    def wait_for_scan(self, timeout: Optional[float] = None) -> None:
        """Block until a pending background scan finishes."""
        if self._scan_thread is not None:
            self._scan_thread.join(timeout)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def refresh_statistics(self) -> Statistics:
        """Rescan the filesystem, cross-reference completion, persist and return."""
        stats = scan_statistics(self.root_path)
        config = self.load_config()
        stats.completed_images = config.count_completed()
        config.statistics = stats
        self.save_config(config)
        return stats

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_image_metadata(self, image_path) -> Optional[ImageMetadata]:
        return self.load_config().image_metadata.get(normalize_path(image_path))

    def update_image_metadata(self, image_path, **changes) -> ImageMetadata:
        """Merge changes into an image's metadata entry and save.

        Accepts ImageMetadata field names (tag_type, custom_prompt,
        is_completed, generated_image_path).
        """
        _check_fields(changes, _IMAGE_FIELDS, "image metadata")

        config = self.load_config()
        key = normalize_path(image_path)
        current = config.image_metadata.get(key) or ImageMetadata()
        updated = replace(current, **changes)
        config.image_metadata[key] = updated
        config.recompute_completed()

        self.save_config(config)
        return updated

    def batch_update_folder_assets(self, folder_path, tag_type: str) -> int:
        """Tag every asset directly inside folder_path (not recursive).

        Also records tag_type as the folder's default. Returns the number of
        assets updated.
        """
        config = self.load_config()
        folder = normalize_path(folder_path)

        updated_count = 0
        with os.scandir(folder) as it:
            for entry in it:
                if is_hidden(entry.name) or not entry.is_file() or not is_supported_image(entry.name):
                    continue
                key = normalize_path(entry.path)
                current = config.image_metadata.get(key) or ImageMetadata()
                config.image_metadata[key] = replace(current, tag_type=tag_type)
                updated_count += 1

        config.folder_metadata[folder] = FolderMetadata(default_tag_type=tag_type)
        config.recompute_completed()

        self.save_config(config)
        logger.info(f"Tagged {updated_count} images in {folder} as {tag_type!r}")
        return updated_count

    def update_folder_metadata(self, folder_path, **changes) -> FolderMetadata:
        """Merge changes into a folder's metadata entry and save."""
        _check_fields(changes, _FOLDER_FIELDS, "folder metadata")

        config = self.load_config()
        key = normalize_path(folder_path)
        current = config.folder_metadata.get(key) or FolderMetadata()
        updated = replace(current, **changes)
        config.folder_metadata[key] = updated

        self.save_config(config)
        return updated

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(
        self,
        global_prompt: Optional[str] = None,
        custom_tag_types: Optional[list[str]] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ProjectConfig:
        """Update any of the settings fields; None leaves a field unchanged."""
        config = self.load_config()

        if global_prompt is not None:
            config.global_settings.global_prompt = global_prompt
        if custom_tag_types is not None:
            config.global_settings.custom_tag_types = list(dict.fromkeys(custom_tag_types))
        if provider is not None:
            config.ai_settings.provider = provider
        if api_key is not None:
            config.ai_settings.api_key = api_key
        if model is not None:
            config.ai_settings.model = model

        self.save_config(config)
        return config

    def add_tag_type(self, label: str) -> list[str]:
        """Append a tag label unless already present. Returns the resulting list."""
        config = self.load_config()
        tag_types = config.global_settings.custom_tag_types
        if label not in tag_types:
            tag_types.append(label)
            self.save_config(config)
        return list(tag_types)
