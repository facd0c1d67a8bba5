"""Tests for the Google image generators and the provider manager."""

import base64
import json

import httpx
import pytest

from gameresx.generators import NO_IMAGE_MESSAGE, mime_type_for
from gameresx.generators.gemini import GeminiFlashGenerator, extract_inline_image
from gameresx.generators.imagen import ImagenGenerator, with_composition_hint
from gameresx.generators.manager import ProviderManager, list_available_models
from gameresx.generators.nano import GeminiProGenerator
from gameresx.models import GenerationRequest, ModelId

API_KEY = "test-key-abcdef123456"
PNG = b"\x89PNG\r\n\x1a\nfake-image"


def inline_response(data: bytes = PNG) -> dict:
    return {
        "candidates": [{
            "content": {
                "parts": [
                    {"text": "Here you go"},
                    {"inlineData": {"mimeType": "image/png", "data": base64.b64encode(data).decode()}},
                ]
            },
            "finishReason": "STOP",
        }]
    }


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestGeminiFlashGenerator:
    """Tests for GeminiFlashGenerator."""

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(ValueError):
            GeminiFlashGenerator()

    def test_generate_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=inline_response())

        gen = GeminiFlashGenerator(api_key=API_KEY, client=mock_client(handler))
        result = gen.generate("make it shiny", source_image=b"source", mime_type="image/jpeg")

        assert result == PNG
        assert seen["url"].endswith("/models/gemini-2.5-flash-image:generateContent")
        assert API_KEY not in seen["url"]
        assert seen["headers"]["x-goog-api-key"] == API_KEY
        parts = seen["body"]["contents"][0]["parts"]
        assert parts[0] == {"text": "make it shiny"}
        assert parts[1]["inlineData"]["mimeType"] == "image/jpeg"
        assert base64.b64decode(parts[1]["inlineData"]["data"]) == b"source"
        assert seen["body"]["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]

    def test_missing_source_image(self):
        gen = GeminiFlashGenerator(api_key=API_KEY, client=mock_client(lambda r: httpx.Response(200)))
        with pytest.raises(ValueError):
            gen.generate("prompt")

    def test_http_error_status(self):
        def handler(request):
            return httpx.Response(403, text="API key not valid")

        gen = GeminiFlashGenerator(api_key=API_KEY, client=mock_client(handler))
        with pytest.raises(RuntimeError) as exc_info:
            gen.generate("prompt", source_image=b"x")
        assert "403" in str(exc_info.value)

    def test_safety_rejection(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": [{"finishReason": "IMAGE_SAFETY"}]})

        gen = GeminiFlashGenerator(api_key=API_KEY, client=mock_client(handler))
        with pytest.raises(RuntimeError) as exc_info:
            gen.generate("prompt", source_image=b"x")
        assert NO_IMAGE_MESSAGE in str(exc_info.value)
        assert "IMAGE_SAFETY" in str(exc_info.value)


class TestExtractInlineImage:
    def test_blocked_prompt(self):
        with pytest.raises(RuntimeError) as exc_info:
            extract_inline_image({"promptFeedback": {"blockReason": "SAFETY"}})
        assert "blocked" in str(exc_info.value)

    def test_text_only_response(self):
        data = {"candidates": [{"content": {"parts": [{"text": "I can't do that"}]}}]}
        with pytest.raises(RuntimeError) as exc_info:
            extract_inline_image(data)
        assert str(exc_info.value) == NO_IMAGE_MESSAGE

    def test_error_payload(self):
        with pytest.raises(RuntimeError) as exc_info:
            extract_inline_image({"error": {"message": "quota exceeded"}})
        assert "quota exceeded" in str(exc_info.value)


class TestGeminiProGenerator:
    def test_payload_includes_image_size(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=inline_response())

        gen = GeminiProGenerator(api_key=API_KEY, client=mock_client(handler), image_size="4K")
        assert gen.generate("prompt", source_image=b"x") == PNG
        assert "gemini-3-pro-image-preview" in seen["url"]
        assert seen["body"]["generationConfig"]["imageConfig"] == {"imageSize": "4K"}
        assert gen.name() == "nano"


class TestImagenGenerator:
    def test_composition_hint(self):
        assert with_composition_hint("a red dragon").endswith("keep the original composition and main subject.")
        assert with_composition_hint("Keep the pose, make it blue") == "Keep the pose, make it blue"
        assert with_composition_hint("preserve layout") == "preserve layout"

    def test_generate_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "predictions": [{"bytesBase64Encoded": base64.b64encode(PNG).decode()}]
            })

        gen = ImagenGenerator(api_key=API_KEY, client=mock_client(handler))
        assert gen.requires_source_image is False
        assert gen.generate("a red dragon", source_image=b"ignored") == PNG
        assert seen["url"].endswith("/models/imagen-4.0-generate-001:predict")
        assert seen["body"]["instances"][0]["prompt"].startswith("a red dragon, but keep")
        assert seen["body"]["parameters"] == {"sampleCount": 1}

    def test_filtered_generation(self):
        gen = ImagenGenerator(api_key=API_KEY, client=mock_client(lambda r: httpx.Response(200, json={})))
        with pytest.raises(RuntimeError) as exc_info:
            gen.generate("a red dragon")
        assert str(exc_info.value) == NO_IMAGE_MESSAGE

    def test_http_error(self):
        gen = ImagenGenerator(api_key=API_KEY, client=mock_client(lambda r: httpx.Response(500, text="boom")))
        with pytest.raises(RuntimeError) as exc_info:
            gen.generate("a red dragon")
        assert "Imagen API error 500" in str(exc_info.value)


class StubGenerator:
    requires_source_image = True
    result = PNG
    error = None
    instances = []

    def __init__(self, api_key=None):
        self.api_key = api_key
        self.closed = False
        type(self).instances.append(self)

    def name(self):
        return "stub"

    def generate(self, prompt, source_image=None, mime_type="image/png"):
        if self.error:
            raise self.error
        return self.result

    def close(self):
        self.closed = True


def stub_class(**attrs):
    attrs.setdefault("instances", [])
    return type("Stub", (StubGenerator,), attrs)


def make_request(tmp_path, model=ModelId.GEMINI_FLASH_IMAGE, source=b"src"):
    return GenerationRequest(
        api_key=API_KEY,
        model=model,
        prompt="prompt",
        output_path=str(tmp_path / "out.temp"),
        source_image=source,
    )


class TestProviderManager:
    """Tests for ProviderManager."""

    def test_writes_output_file(self, tmp_path):
        stub = stub_class()
        manager = ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: stub})

        result = manager.generate(make_request(tmp_path))

        assert result.success is True
        assert result.output_path == str(tmp_path / "out.temp")
        assert (tmp_path / "out.temp").read_bytes() == PNG

    def test_generators_cached_and_closed(self, tmp_path):
        stub = stub_class()
        with ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: stub}) as manager:
            manager.generate(make_request(tmp_path))
            manager.generate(make_request(tmp_path))
            assert len(stub.instances) == 1
        assert stub.instances[0].closed is True

    def test_generator_error_becomes_failure(self, tmp_path):
        stub = stub_class(error=RuntimeError(NO_IMAGE_MESSAGE))
        manager = ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: stub})

        result = manager.generate(make_request(tmp_path))

        assert result.success is False
        assert result.message == NO_IMAGE_MESSAGE
        assert result.output_path is None
        assert not (tmp_path / "out.temp").exists()

    def test_transport_error_becomes_failure(self, tmp_path):
        stub = stub_class(error=httpx.ConnectError("connection refused"))
        manager = ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: stub})

        result = manager.generate(make_request(tmp_path))

        assert result.success is False
        assert "connection refused" in result.message

    def test_no_retry(self, tmp_path):
        calls = []

        class Counting(StubGenerator):
            instances = []

            def generate(self, prompt, source_image=None, mime_type="image/png"):
                calls.append(prompt)
                raise RuntimeError("rejected")

        manager = ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: Counting})
        manager.generate(make_request(tmp_path))

        assert calls == ["prompt"]

    def test_unregistered_model(self, tmp_path):
        manager = ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: stub_class()})

        result = manager.generate(make_request(tmp_path, model=ModelId.IMAGEN_4))

        assert result.success is False
        assert "Unsupported model" in result.message

    def test_missing_source_for_image_conditioned_model(self, tmp_path):
        manager = ProviderManager(registry={ModelId.GEMINI_FLASH_IMAGE: lambda: stub_class()})
        result = manager.generate(make_request(tmp_path, source=None))
        assert result.success is False

    def test_text_only_model_gets_no_source(self, tmp_path):
        received = {}

        class TextOnly(StubGenerator):
            requires_source_image = False
            instances = []

            def generate(self, prompt, source_image=None, mime_type="image/png"):
                received["source_image"] = source_image
                return PNG

        manager = ProviderManager(registry={ModelId.IMAGEN_4: lambda: TextOnly})
        result = manager.generate(make_request(tmp_path, model=ModelId.IMAGEN_4))

        assert result.success is True
        assert received["source_image"] is None

    def test_default_registry_covers_every_model(self):
        assert set(ProviderManager().supported_models) == set(ModelId)


class TestListAvailableModels:
    def test_follows_pagination(self):
        def handler(request):
            assert request.headers["x-goog-api-key"] == API_KEY
            if request.url.params.get("pageToken") == "page2":
                return httpx.Response(200, json={"models": [{"name": "models/imagen-4.0-generate-001"}]})
            return httpx.Response(200, json={
                "models": [{"name": "models/gemini-2.5-flash-image"}],
                "nextPageToken": "page2",
            })

        names = list_available_models(API_KEY, client=mock_client(handler))

        assert names == ["models/gemini-2.5-flash-image", "models/imagen-4.0-generate-001"]

    def test_error_returns_empty(self):
        names = list_available_models(API_KEY, client=mock_client(lambda r: httpx.Response(401)))
        assert names == []


def test_mime_type_for():
    assert mime_type_for("/a/b.PNG") == "image/png"
    assert mime_type_for("/a/b.jpeg") == "image/jpeg"
    assert mime_type_for("/a/b.JPG") == "image/jpeg"
    assert mime_type_for("/a/b.webp") == "image/webp"


def test_list_models_retries_network_errors(monkeypatch):
    from gameresx.generators import manager

    monkeypatch.setattr(manager._fetch_models_page.retry, "sleep", lambda seconds: None)
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("temporary failure")
        return httpx.Response(200, json={"models": [{"name": "models/gemini-2.5-flash-image"}]})

    names = list_available_models(API_KEY, client=mock_client(handler))

    assert names == ["models/gemini-2.5-flash-image"]
    assert len(attempts) == 2
