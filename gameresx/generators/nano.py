"""
Nano Banana Pro (Gemini 3 Pro Image) generator for GameResX.

Nano Banana Pro is the codename for Google's Gemini 3 Pro Image model. It
shares the generateContent request shape with Gemini 2.5 Flash Image but
accepts an output size hint.
"""

from typing import Optional

import httpx

from .gemini import GeminiFlashGenerator


GEMINI_IMAGE_MODEL = "gemini-3-pro-image-preview"


class GeminiProGenerator(GeminiFlashGenerator):
    """
    Nano Banana Pro image generator.

    Higher quality than Flash; dimensions are still reconciled afterwards
    since the model picks its own output size.
    """

    model = GEMINI_IMAGE_MODEL

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        image_size: str = "2K",
    ):
        super().__init__(api_key=api_key, client=client)
        self.image_size = image_size

    def name(self) -> str:
        return "nano"

    def build_payload(self, prompt: str, source_image: bytes, mime_type: str) -> dict:
        payload = super().build_payload(prompt, source_image, mime_type)
        payload["generationConfig"]["imageConfig"] = {"imageSize": self.image_size}
        return payload
