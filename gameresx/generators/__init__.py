"""
Image generators for GameResX.
"""

import base64
from abc import ABC, abstractmethod
from typing import Optional

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

NO_IMAGE_MESSAGE = (
    "The API returned no image data; the prompt may have been rejected by the content safety policy"
)


class ImageGenerator(ABC):
    """Abstract base class for image generators."""

    # Image-conditioned generators need the source asset's bytes
    requires_source_image: bool = False

    @abstractmethod
    def generate(
        self,
        prompt: str,
        source_image: Optional[bytes] = None,
        mime_type: str = "image/png",
    ) -> bytes:
        """Generate an image from a prompt.

        Args:
            prompt: The generation prompt
            source_image: Bytes of the image to condition on, if supported
            mime_type: MIME type of source_image

        Returns:
            Image bytes (PNG or JPEG)

        Raises:
            RuntimeError: API error or no image in the response
            ValueError: missing source image for an image-conditioned model
        """
        pass

    @abstractmethod
    def name(self) -> str:
        """Return the generator name."""
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def encode_image(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def mime_type_for(path: str) -> str:
    """Guess the MIME type of an asset from its extension."""
    lowered = path.lower()
    if lowered.endswith((".jpg", ".jpeg")):
        return "image/jpeg"
    if lowered.endswith(".webp"):
        return "image/webp"
    return "image/png"


# Lazy imports to avoid loading all generators at startup
def get_gemini_flash_generator():
    from .gemini import GeminiFlashGenerator
    return GeminiFlashGenerator


def get_gemini_pro_generator():
    from .nano import GeminiProGenerator
    return GeminiProGenerator


def get_imagen_generator():
    from .imagen import ImagenGenerator
    return ImagenGenerator
