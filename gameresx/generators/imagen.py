"""
Imagen 4 generator for GameResX.

Imagen is text-only: the source asset is not sent, so the prompt is extended
to ask the model to keep the original composition.
"""

import base64
import os
from typing import Optional

import httpx

from . import GOOGLE_API_BASE, NO_IMAGE_MESSAGE, ImageGenerator


IMAGEN_MODEL = "imagen-4.0-generate-001"
IMAGEN_API_URL = f"{GOOGLE_API_BASE}/models/{IMAGEN_MODEL}:predict"

COMPOSITION_SUFFIX = ", but keep the original composition and main subject."


def with_composition_hint(prompt: str) -> str:
    lowered = prompt.lower()
    if "keep" in lowered or "preserve" in lowered:
        return prompt
    return prompt + COMPOSITION_SUFFIX


class ImagenGenerator(ImageGenerator):
    """Imagen 4 text-to-image generator."""

    requires_source_image = False

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Google API key not provided. Set GOOGLE_API_KEY environment variable "
                "or configure an API key for the project."
            )
        self._client = client or httpx.Client(timeout=120.0)

    def name(self) -> str:
        return "imagen"

    def generate(
        self,
        prompt: str,
        source_image: Optional[bytes] = None,
        mime_type: str = "image/png",
    ) -> bytes:
        """
        Generate an image from the prompt. source_image is ignored.

        Returns:
            Image bytes (PNG format)
        """
        response = self._client.post(
            IMAGEN_API_URL,
            json={
                "instances": [{"prompt": with_composition_hint(prompt)}],
                "parameters": {"sampleCount": 1},
            },
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
        )

        if not response.is_success:
            raise RuntimeError(f"Imagen API error {response.status_code}: {response.text}")

        data = response.json()

        for prediction in data.get("predictions") or []:
            if prediction.get("bytesBase64Encoded"):
                return base64.b64decode(prediction["bytesBase64Encoded"])

        if data.get("error"):
            raise RuntimeError(f"Imagen API error: {data['error'].get('message', 'Unknown error')}")

        # Filtered generations come back with no predictions at all
        raise RuntimeError(NO_IMAGE_MESSAGE)

    def close(self):
        """Close the HTTP client."""
        self._client.close()
