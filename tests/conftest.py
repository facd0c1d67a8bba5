"""Shared fixtures for GameResX tests."""

import io

import pytest
from PIL import Image


def make_image(path, size=(64, 48), color=(200, 30, 30), fmt="PNG"):
    """Write a solid-colour image to path and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def image_bytes(size=(64, 48), color=(0, 128, 255), fmt="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def project_root(tmp_path):
    """A project root with a couple of assets in nested folders."""
    root = tmp_path / "game"
    make_image(root / "ui" / "button.png")
    make_image(root / "ui" / "panel.jpg", fmt="JPEG")
    make_image(root / "icons" / "sword.webp", fmt="WEBP")
    return root
