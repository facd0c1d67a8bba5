"""
Gemini 2.5 Flash Image generator for GameResX.

Image-conditioned: the asset's current bytes are sent alongside the prompt so
the model restyles the existing image instead of inventing a new one.
"""

import base64
import os
from typing import Optional

import httpx

from . import GOOGLE_API_BASE, NO_IMAGE_MESSAGE, ImageGenerator, encode_image


GEMINI_MODEL = "gemini-2.5-flash-image"


class GeminiFlashGenerator(ImageGenerator):
    """
    Gemini 2.5 Flash image generator.

    Uses Google's Gemini 2.5 Flash Image model through the generateContent API.
    """

    model = GEMINI_MODEL
    requires_source_image = True

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.Client] = None):
        """
        Initialize the Gemini generator.

        Args:
            api_key: Google API key. If not provided, reads from GOOGLE_API_KEY env var.
            client: Optional preconfigured HTTP client.
        """
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Google API key not provided. Set GOOGLE_API_KEY environment variable "
                "or configure an API key for the project."
            )
        self._client = client or httpx.Client(timeout=120.0)

    @property
    def api_url(self) -> str:
        return f"{GOOGLE_API_BASE}/models/{self.model}:generateContent"

    def name(self) -> str:
        return "gemini-flash"

    def build_payload(self, prompt: str, source_image: bytes, mime_type: str) -> dict:
        return {
            "contents": [{
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": mime_type, "data": encode_image(source_image)}},
                ]
            }],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
            },
        }

    def generate(
        self,
        prompt: str,
        source_image: Optional[bytes] = None,
        mime_type: str = "image/png",
    ) -> bytes:
        """
        Restyle source_image according to prompt.

        Returns:
            Image bytes (PNG format)
        """
        if not source_image:
            raise ValueError(f"{self.model} requires the source image bytes")

        response = self._client.post(
            self.api_url,
            json=self.build_payload(prompt, source_image, mime_type),
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
        )

        if not response.is_success:
            raise RuntimeError(f"Gemini API error {response.status_code}: {response.text}")

        return extract_inline_image(response.json())

    def close(self):
        """Close the HTTP client."""
        self._client.close()


def extract_inline_image(data: dict) -> bytes:
    """Pull the first inline image out of a generateContent response."""
    # Response format: candidates[].content.parts[].inlineData.data
    for candidate in data.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            inline_data = part.get("inlineData") or {}
            if inline_data.get("data"):
                return base64.b64decode(inline_data["data"])

    if data.get("error"):
        raise RuntimeError(f"Gemini API error: {data['error'].get('message', 'Unknown error')}")

    block_reason = (data.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        raise RuntimeError(f"{NO_IMAGE_MESSAGE} (blocked: {block_reason})")

    candidates = data.get("candidates") or []
    if candidates and candidates[0].get("finishReason") in ("SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT"):
        raise RuntimeError(f"{NO_IMAGE_MESSAGE} (finish reason: {candidates[0]['finishReason']})")

    raise RuntimeError(NO_IMAGE_MESSAGE)
