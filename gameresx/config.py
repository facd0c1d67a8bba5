"""
Configuration management for GameResX.

Two layers exist:
- the user-level YAML config in ~/.gameresx/config.yaml (API keys, defaults)
- the per-project JSON document in <root>/.gameresx/Project.json (see project.py)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml


GLOBAL_CONFIG_DIR = Path.home() / ".gameresx"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"

PROJECT_DIR_NAME = ".gameresx"
PROJECT_CONFIG_FILE = "Project.json"
CONFIG_VERSION = "1.0.0"

BACKUP_SUFFIX = ".back"
SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")
HIDDEN_PREFIX = "."

DEFAULT_MODEL = "gemini-2.5-flash-image"
DEFAULT_PROVIDER = "google"
DEFAULT_TAG_TYPES = ["UI", "Icon", "General"]


def is_hidden(name: str) -> bool:
    return name.startswith(HIDDEN_PREFIX)


def is_supported_image(name: str) -> bool:
    """Check the file extension against the supported raster set (case-insensitive)."""
    return os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask a secret for display, keeping only the last few characters."""
    if not value:
        return "(not set)"
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


@dataclass
class APIKeys:
    """Provider credentials from the user config file."""

    google: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "APIKeys":
        return cls(
            google=data.get("google", ""),
        )

    @classmethod
    def from_env(cls) -> "APIKeys":
        """GOOGLE_API_KEY, falling back to GEMINI_API_KEY."""
        return cls(
            google=os.getenv("GOOGLE_API_KEY", "") or os.getenv("GEMINI_API_KEY", ""),
        )

    def merge_env(self) -> "APIKeys":
        """Return a copy where keys set in the environment win."""
        env_keys = APIKeys.from_env()
        return APIKeys(
            google=env_keys.google or self.google,
        )


@dataclass
class Defaults:
    """Defaults applied to newly created projects."""

    model: str = DEFAULT_MODEL

    @classmethod
    def from_dict(cls, data: dict) -> "Defaults":
        return cls(
            model=data.get("model", DEFAULT_MODEL),
        )


@dataclass
class Config:
    """User-level configuration (~/.gameresx/config.yaml)."""

    api_keys: APIKeys = field(default_factory=APIKeys)
    defaults: Defaults = field(default_factory=Defaults)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Read the YAML file if present, then overlay environment keys."""
        config_path = config_path or GLOBAL_CONFIG_FILE

        config = cls()

        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
                config.api_keys = APIKeys.from_dict(data.get("api_keys", {}))
                config.defaults = Defaults.from_dict(data.get("defaults", {}))

        # Environment variables take precedence
        config.api_keys = config.api_keys.merge_env()

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Write the YAML file. Environment-only keys are persisted too."""
        config_path = config_path or GLOBAL_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "api_keys": {
                "google": self.api_keys.google,
            },
            "defaults": {
                "model": self.defaults.model,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    def validate(self) -> list[str]:
        """Return human-readable problems; empty when generation can run."""
        issues = []

        if not self.api_keys.google:
            issues.append("No Google API key: run `gameresx setup-keys --google KEY` or set GOOGLE_API_KEY")

        # Imported here to avoid a cycle through models -> config
        from gameresx.models import ModelId

        try:
            ModelId.from_string(self.defaults.model)
        except ValueError as e:
            issues.append(str(e))

        return issues


def get_project_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Find the nearest directory (current or parent) that holds a .gameresx folder."""
    current = (start_path or Path.cwd()).resolve()

    while True:
        if (current / PROJECT_DIR_NAME).is_dir():
            return current
        if current == current.parent:
            return None
        current = current.parent
