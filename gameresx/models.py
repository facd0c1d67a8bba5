"""
Data models for GameResX.

The project document is persisted with camelCase keys; the dataclasses here
expose snake_case attributes and translate in to_dict/from_dict.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import json
import os
import tempfile

from gameresx.config import (
    CONFIG_VERSION,
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_TAG_TYPES,
    mask_secret,
)


def _now_iso() -> str:
    return datetime.now().isoformat()


class ModelId(Enum):
    """Supported generation models, one provider implementation each."""

    GEMINI_FLASH_IMAGE = "gemini-2.5-flash-image"
    GEMINI_PRO_IMAGE = "gemini-3-pro-image-preview"
    IMAGEN_4 = "imagen-4.0-generate-001"

    @classmethod
    def from_string(cls, value: str) -> "ModelId":
        """Resolve an exact model identifier (case-insensitive, surrounding whitespace ignored)."""
        normalized = (value or "").strip().lower()
        for model in cls:
            if model.value == normalized:
                return model
        supported = ", ".join(m.value for m in cls)
        raise ValueError(f"Unsupported model: {value!r} (supported: {supported})")


@dataclass
class ImageMetadata:
    """Per-asset metadata."""

    tag_type: Optional[str] = None
    custom_prompt: str = ""
    is_completed: bool = False
    generated_image_path: Optional[str] = None
    # Keys this version does not know about, written back unchanged
    extra: dict = field(default_factory=dict, repr=False)

    KNOWN_KEYS = ("tagType", "customPrompt", "isCompleted", "generatedImagePath")

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "tagType": self.tag_type,
            "customPrompt": self.custom_prompt,
            "isCompleted": self.is_completed,
            "generatedImagePath": self.generated_image_path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImageMetadata":
        return cls(
            tag_type=data.get("tagType"),
            custom_prompt=data.get("customPrompt") or "",
            is_completed=bool(data.get("isCompleted", False)),
            generated_image_path=data.get("generatedImagePath"),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )


@dataclass
class FolderMetadata:
    """Per-folder metadata."""

    default_tag_type: Optional[str] = None
    extra: dict = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict:
        return {**self.extra, "defaultTagType": self.default_tag_type}

    @classmethod
    def from_dict(cls, data: dict) -> "FolderMetadata":
        return cls(
            default_tag_type=data.get("defaultTagType"),
            extra={k: v for k, v in data.items() if k != "defaultTagType"},
        )


@dataclass
class GlobalSettings:
    global_prompt: str = ""
    custom_tag_types: list[str] = field(default_factory=lambda: list(DEFAULT_TAG_TYPES))

    def to_dict(self) -> dict:
        return {
            "globalPrompt": self.global_prompt,
            "customTagTypes": list(self.custom_tag_types),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GlobalSettings":
        tag_types = data.get("customTagTypes")
        if tag_types is None:
            tag_types = list(DEFAULT_TAG_TYPES)
        return cls(
            global_prompt=data.get("globalPrompt") or "",
            # Ordered set: keep first occurrence only
            custom_tag_types=list(dict.fromkeys(tag_types)),
        )


@dataclass
class AISettings:
    """Provider selection and credentials. api_key is a secret."""

    provider: str = DEFAULT_PROVIDER
    api_key: str = ""
    model: str = DEFAULT_MODEL

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "apiKey": self.api_key,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AISettings":
        return cls(
            provider=data.get("provider", DEFAULT_PROVIDER),
            api_key=data.get("apiKey", ""),
            model=data.get("model", DEFAULT_MODEL),
        )

    def __repr__(self) -> str:
        return f"AISettings(provider={self.provider!r}, api_key={mask_secret(self.api_key)!r}, model={self.model!r})"


@dataclass
class Statistics:
    """Derived counters, recomputable from the filesystem and imageMetadata."""

    total_images: int = 0
    completed_images: int = 0
    empty_folders: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalImages": self.total_images,
            "completedImages": self.completed_images,
            "emptyFolders": list(self.empty_folders),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Statistics":
        return cls(
            total_images=data.get("totalImages", 0),
            completed_images=data.get("completedImages", 0),
            empty_folders=list(data.get("emptyFolders", [])),
        )


@dataclass
class ProjectConfig:
    """The complete project document, one per project root."""

    REQUIRED_SECTIONS = (
        "globalSettings",
        "aiSettings",
        "statistics",
        "imageMetadata",
        "folderMetadata",
    )

    root_path: str
    version: str = CONFIG_VERSION
    project_name: str = ""
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    global_settings: GlobalSettings = field(default_factory=GlobalSettings)
    ai_settings: AISettings = field(default_factory=AISettings)
    statistics: Statistics = field(default_factory=Statistics)

    image_metadata: dict[str, ImageMetadata] = field(default_factory=dict)
    folder_metadata: dict[str, FolderMetadata] = field(default_factory=dict)
    extra: dict = field(default_factory=dict, repr=False)

    KNOWN_KEYS = ("version", "projectName", "rootPath", "createdAt", "updatedAt") + REQUIRED_SECTIONS

    @classmethod
    def create_default(cls, root_path: str) -> "ProjectConfig":
        """Synthesize a fresh configuration for a project root."""
        name = Path(root_path).name or "Untitled Project"
        return cls(root_path=root_path, project_name=name)

    @classmethod
    def needs_migration(cls, data: dict) -> bool:
        """True if the raw document is from another schema version or lacks a section."""
        if data.get("version") != CONFIG_VERSION:
            return True
        return any(section not in data for section in cls.REQUIRED_SECTIONS)

    def count_completed(self) -> int:
        return sum(1 for meta in self.image_metadata.values() if meta.is_completed)

    def recompute_completed(self) -> None:
        self.statistics.completed_images = self.count_completed()

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "version": self.version,
            "projectName": self.project_name,
            "rootPath": self.root_path,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "globalSettings": self.global_settings.to_dict(),
            "aiSettings": self.ai_settings.to_dict(),
            "statistics": self.statistics.to_dict(),
            "imageMetadata": {path: meta.to_dict() for path, meta in self.image_metadata.items()},
            "folderMetadata": {path: meta.to_dict() for path, meta in self.folder_metadata.items()},
        }

    @classmethod
    def from_dict(cls, data: dict, root_path: Optional[str] = None) -> "ProjectConfig":
        """Build a config, filling every absent section or field from defaults."""
        if not isinstance(data, dict):
            raise ValueError(f"Project config must be a JSON object, got {type(data).__name__}")

        root = data.get("rootPath") or root_path or ""
        defaults = cls.create_default(root)
        return cls(
            root_path=root,
            version=data.get("version", CONFIG_VERSION),
            project_name=data.get("projectName") or defaults.project_name,
            created_at=data.get("createdAt") or defaults.created_at,
            updated_at=data.get("updatedAt") or defaults.updated_at,
            global_settings=GlobalSettings.from_dict(data.get("globalSettings") or {}),
            ai_settings=AISettings.from_dict(data.get("aiSettings") or {}),
            statistics=Statistics.from_dict(data.get("statistics") or {}),
            image_metadata={
                path: ImageMetadata.from_dict(meta)
                for path, meta in (data.get("imageMetadata") or {}).items()
            },
            folder_metadata={
                path: FolderMetadata.from_dict(meta)
                for path, meta in (data.get("folderMetadata") or {}).items()
            },
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    def save(self, path: Path) -> None:
        """Write the document as indented JSON via a temp file and an atomic replace.

        Each save gets its own temp file so overlapping saves never share one.
        """
        self.updated_at = _now_iso()
        temp = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f"{path.name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with temp as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(temp.name, path)
        except (OSError, TypeError, ValueError):
            os.remove(temp.name)
            raise

    @classmethod
    def load(cls, path: Path, root_path: Optional[str] = None) -> "ProjectConfig":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f), root_path=root_path)


# ----------------------------------------------------------------------------
# Filesystem views
# ----------------------------------------------------------------------------


@dataclass
class TreeNode:
    """A directory in the project tree."""

    name: str
    path: str
    children: list["TreeNode"] = field(default_factory=list)
    has_images: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "children": [child.to_dict() for child in self.children],
            "has_images": self.has_images,
        }


@dataclass
class AssetFile:
    """An image asset directly inside a folder."""

    name: str
    path: str
    extension: str


# ----------------------------------------------------------------------------
# Image measurement and generation results
# ----------------------------------------------------------------------------


@dataclass
class ImageInfo:
    width: int
    height: int
    format: str
    size_bytes: int

    @property
    def dimensions(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass
class DimensionComparison:
    is_same: bool
    original: ImageInfo
    generated: ImageInfo


@dataclass
class DimensionInfo:
    """Dimension report attached to a successful generation."""

    original: tuple[int, int]
    generated: tuple[int, int]
    needs_resize: bool

    def to_dict(self) -> dict:
        return {
            "original": {"width": self.original[0], "height": self.original[1]},
            "generated": {"width": self.generated[0], "height": self.generated[1]},
            "needs_resize": self.needs_resize,
        }


@dataclass
class GenerationRequest:
    """Everything a provider needs for one generation attempt."""

    api_key: str
    model: ModelId
    prompt: str
    output_path: str
    source_image: Optional[bytes] = None
    source_mime_type: str = "image/png"

    def __repr__(self) -> str:
        size = len(self.source_image) if self.source_image else 0
        return (
            f"GenerationRequest(model={self.model.value!r}, api_key={mask_secret(self.api_key)!r}, "
            f"prompt={self.prompt!r}, output_path={self.output_path!r}, source_image=<{size} bytes>)"
        )


@dataclass
class ProviderResult:
    success: bool
    message: str
    output_path: Optional[str] = None


@dataclass
class GenerateOutcome:
    """Result of a single generate-and-replace run."""

    success: bool
    message: str
    dimension_info: Optional[DimensionInfo] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "dimension_info": self.dimension_info.to_dict() if self.dimension_info else None,
        }


@dataclass
class FolderGenerateSummary:
    success: int = 0
    failed: int = 0
    messages: list[str] = field(default_factory=list)


@dataclass
class BackupSummary:
    """Counts from a batch backup. skipped means a sidecar already existed."""

    total: int = 0
    success: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "success": self.success,
            "skipped": self.skipped,
            "failed": self.failed,
        }


@dataclass
class OperationResult:
    """Structured outcome returned across the workspace boundary."""

    success: bool
    message: str = ""
    data: Any = None
