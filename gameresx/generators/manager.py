"""
Provider manager for model-keyed image generation.

Dispatch goes through an explicit ModelId -> generator lookup table. Provider
failures are reported as ProviderResult values and never retried.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import httpx
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import (
    GOOGLE_API_BASE,
    ImageGenerator,
    get_gemini_flash_generator,
    get_gemini_pro_generator,
    get_imagen_generator,
)
from ..config import mask_secret
from ..models import GenerationRequest, ModelId, ProviderResult

logger = logging.getLogger(__name__)

# Factory returns the generator class for a model; resolved lazily
DEFAULT_REGISTRY: dict[ModelId, Callable[[], type]] = {
    ModelId.GEMINI_FLASH_IMAGE: get_gemini_flash_generator,
    ModelId.GEMINI_PRO_IMAGE: get_gemini_pro_generator,
    ModelId.IMAGEN_4: get_imagen_generator,
}


class ProviderManager:
    """Routes generation requests to the generator registered for their model.

    Usage:
        with ProviderManager() as providers:
            result = providers.generate(request)
            if not result.success:
                print(result.message)
    """

    def __init__(self, registry: Optional[dict[ModelId, Callable[[], type]]] = None):
        """
        Args:
            registry: Mapping of model to a factory returning the generator
                class. Defaults to the bundled Google generators.
        """
        self.registry = dict(registry or DEFAULT_REGISTRY)
        # Lazy-loaded generators, keyed by (model, api_key)
        self._generators: dict[tuple[ModelId, str], ImageGenerator] = {}

    @property
    def supported_models(self) -> list[ModelId]:
        return list(self.registry)

    def _get_generator(self, model: ModelId, api_key: str) -> ImageGenerator:
        """Lazy-load and return the generator for a model."""
        key = (model, api_key)
        if key not in self._generators:
            factory = self.registry.get(model)
            if factory is None:
                raise ValueError(f"Unsupported model: {model.value}")
            generator_cls = factory()
            self._generators[key] = generator_cls(api_key=api_key)
        return self._generators[key]

    def generate(self, request: GenerationRequest) -> ProviderResult:
        """Run one generation and write the image to request.output_path."""
        logger.info(f"Generating with {request.model.value} (key {mask_secret(request.api_key)})")
        logger.debug(f"Prompt: {request.prompt}")

        try:
            generator = self._get_generator(request.model, request.api_key)
            if generator.requires_source_image and not request.source_image:
                raise ValueError(f"{request.model.value} requires the source image bytes")

            image_bytes = generator.generate(
                request.prompt,
                source_image=request.source_image if generator.requires_source_image else None,
                mime_type=request.source_mime_type,
            )
            if not image_bytes:
                raise RuntimeError(f"{generator.name()} returned an empty image")

            Path(request.output_path).write_bytes(image_bytes)

        except (httpx.HTTPError, RuntimeError, ValueError, OSError) as e:
            logger.warning(f"Provider {request.model.value} failed: {e}")
            return ProviderResult(success=False, message=str(e))

        logger.info(f"Generated {len(image_bytes)} bytes -> {request.output_path}")
        return ProviderResult(
            success=True,
            message="Image generated",
            output_path=request.output_path,
        )

    def close(self):
        """Clean up resources."""
        for generator in self._generators.values():
            generator.close()
        self._generators.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((
        httpx.ConnectTimeout,
        httpx.ReadTimeout,
        httpx.NetworkError,
    )),
    before_sleep=before_sleep_log(logger, logging.WARNING),
)
def _fetch_models_page(client: httpx.Client, api_key: str, params: dict) -> dict:
    """Fetch one page of the model listing, retrying transient network failures."""
    response = client.get(
        f"{GOOGLE_API_BASE}/models",
        params=params,
        headers={"x-goog-api-key": api_key},
    )
    response.raise_for_status()
    return response.json()


def list_available_models(api_key: str, client: Optional[httpx.Client] = None) -> list[str]:
    """List model names visible to an API key. Returns [] on any failure.

    Transient network errors are retried; generation requests never are.
    """
    own_client = client is None
    client = client or httpx.Client(timeout=30.0)
    names: list[str] = []
    params: dict = {}

    try:
        while True:
            data = _fetch_models_page(client, api_key, params)
            names.extend(model["name"] for model in data.get("models", []) if model.get("name"))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {"pageToken": page_token}
    except (httpx.HTTPError, RetryError, ValueError, KeyError) as e:
        logger.error(f"Failed to list models: {e}")
        return []
    finally:
        if own_client:
            client.close()

    return names
