"""
GameResX - iterative reskinning of game image assets with generative models.

Tracks per-image tags and prompts, sends images to a generation model, fits the
result to the original's dimensions and swaps it in while keeping the original
as a .back sidecar.
"""

from pathlib import Path

# Read version from VERSION file (single source of truth)
_version_file = Path(__file__).parent.parent / "VERSION"
if _version_file.exists():
    __version__ = _version_file.read_text().strip()
else:
    __version__ = "0.1.0"  # Fallback for development

from gameresx.models import ProjectConfig, ImageMetadata, FolderMetadata, ModelId
from gameresx.project import ProjectManager
from gameresx.backup import BackupEngine
from gameresx.orchestrator import GenerationOrchestrator
from gameresx.workspace import Workspace
from gameresx.config import Config

__all__ = [
    "__version__",
    "ProjectConfig",
    "ImageMetadata",
    "FolderMetadata",
    "ModelId",
    "ProjectManager",
    "BackupEngine",
    "GenerationOrchestrator",
    "Workspace",
    "Config",
]
