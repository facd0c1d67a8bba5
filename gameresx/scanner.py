"""
Filesystem scanning for GameResX projects.

Every walk skips hidden entries (names starting with ".") so the project's own
.gameresx directory is never counted. An unreadable directory is logged and
treated as holding no assets; the rest of the walk continues.
"""

import logging
import os
from typing import Optional

from gameresx.config import is_hidden, is_supported_image
from gameresx.models import AssetFile, Statistics, TreeNode

logger = logging.getLogger(__name__)


def _list_entries(dir_path: str) -> Optional[list[os.DirEntry]]:
    """Return non-hidden entries of a directory, or None if it cannot be read."""
    try:
        with os.scandir(dir_path) as it:
            return [entry for entry in it if not is_hidden(entry.name)]
    except OSError as e:
        logger.warning(f"Error scanning directory {dir_path}: {e}")
        return None


def scan_statistics(root_path: str) -> Statistics:
    """Count assets under root_path and collect folders with no assets in their subtree.

    A folder is reported as empty only if it has at least one subdirectory and
    is not the root itself; leaf folders without assets are not reported.
    completed_images is always 0 here, see ProjectManager.refresh_statistics.
    """
    stats = Statistics()

    def scan_dir(dir_path: str) -> bool:
        entries = _list_entries(dir_path)
        if entries is None:
            return False

        has_images = False
        has_subfolders = False

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                has_subfolders = True
                if scan_dir(entry.path):
                    has_images = True
            elif entry.is_file() and is_supported_image(entry.name):
                stats.total_images += 1
                has_images = True

        if has_subfolders and not has_images and dir_path != root_path:
            stats.empty_folders.append(dir_path)

        return has_images

    scan_dir(root_path)
    return stats


def scan_directory(root_path: str) -> list[TreeNode]:
    """Build the folder tree under root_path.

    A subfolder is kept if it holds images or has kept children of its own.
    Returns an empty list if the root cannot be read.
    """

    def build_tree(dir_path: str) -> Optional[TreeNode]:
        entries = _list_entries(dir_path)
        if entries is None:
            return None

        node = TreeNode(name=os.path.basename(dir_path) or dir_path, path=dir_path)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                child = build_tree(entry.path)
                if child and (child.has_images or child.children):
                    node.children.append(child)
                    if child.has_images:
                        node.has_images = True
            elif entry.is_file() and is_supported_image(entry.name):
                node.has_images = True

        node.children.sort(key=lambda c: c.name)
        return node

    root = build_tree(root_path)
    return [root] if root else []


def list_images(folder_path: str) -> list[AssetFile]:
    """List the assets directly inside folder_path, sorted by name."""
    entries = _list_entries(folder_path)
    if entries is None:
        return []

    images = [
        AssetFile(
            name=entry.name,
            path=entry.path,
            extension=os.path.splitext(entry.name)[1].lower(),
        )
        for entry in entries
        if entry.is_file() and is_supported_image(entry.name)
    ]
    images.sort(key=lambda a: a.name)
    return images


def collect_assets(folder_path: str) -> list[str]:
    """Recursively collect asset paths under folder_path."""
    images = []
    entries = _list_entries(folder_path)
    if entries is None:
        return images

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            images.extend(collect_assets(entry.path))
        elif entry.is_file() and is_supported_image(entry.name):
            images.append(entry.path)

    return images
