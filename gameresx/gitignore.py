"""
.gitignore integration.

Sidecars (*.back) and the project config directory should not be committed
alongside the game assets. These helpers find the enclosing .gitignore and
append the rules when they are missing.
"""

import logging
from pathlib import Path
from typing import Optional

from gameresx.config import BACKUP_SUFFIX, PROJECT_DIR_NAME

logger = logging.getLogger(__name__)

BACKUP_RULE = f"*{BACKUP_SUFFIX}"
CONFIG_RULE = f"{PROJECT_DIR_NAME}/"
GITIGNORE_RULES = [
    "",
    "# GameResX - image backups and project config",
    BACKUP_RULE,
    CONFIG_RULE,
]

MAX_SEARCH_DEPTH = 5


def find_gitignore(start_path: Path, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[Path]:
    """Search start_path and its parents for a .gitignore, at most max_depth levels (1..5)."""
    current = Path(start_path).resolve()
    depth = min(max(max_depth, 1), MAX_SEARCH_DEPTH)

    for _ in range(depth):
        candidate = current / ".gitignore"
        if candidate.is_file():
            logger.debug(f"Found .gitignore at {candidate}")
            return candidate
        if current.parent == current:
            break
        current = current.parent

    logger.debug(f"No .gitignore found within {depth} levels of {start_path}")
    return None


def has_rules(gitignore_path: Path) -> bool:
    """Check whether both the sidecar and config rules are present."""
    try:
        content = gitignore_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Error reading {gitignore_path}: {e}")
        return False
    return BACKUP_RULE in content and CONFIG_RULE in content


def add_rules(gitignore_path: Path) -> None:
    """Append the GameResX rules. Errors propagate."""
    content = ""
    if gitignore_path.exists():
        content = gitignore_path.read_text(encoding="utf-8")
        if content and not content.endswith("\n"):
            content += "\n"

    content += "\n".join(GITIGNORE_RULES) + "\n"
    gitignore_path.write_text(content, encoding="utf-8")
    logger.info(f"Added GameResX rules to {gitignore_path}")


def check_project(project_root: Path) -> tuple[bool, Optional[Path]]:
    """Return (needs_config, gitignore_path). No .gitignore means nothing to configure."""
    gitignore_path = find_gitignore(project_root)
    if gitignore_path is None:
        return False, None
    return not has_rules(gitignore_path), gitignore_path
