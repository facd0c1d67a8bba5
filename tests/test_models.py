"""Tests for data models."""

import pytest

from gameresx.config import CONFIG_VERSION, DEFAULT_MODEL, DEFAULT_TAG_TYPES, mask_secret
from gameresx.models import (
    AISettings,
    GenerationRequest,
    GlobalSettings,
    ImageMetadata,
    ModelId,
    ProjectConfig,
)


class TestImageMetadata:
    def test_defaults(self):
        meta = ImageMetadata()
        assert meta.tag_type is None
        assert meta.custom_prompt == ""
        assert meta.is_completed is False
        assert meta.generated_image_path is None

    def test_to_dict_uses_document_keys(self):
        meta = ImageMetadata(tag_type="UI", custom_prompt="shiny", is_completed=True)
        d = meta.to_dict()
        assert d == {
            "tagType": "UI",
            "customPrompt": "shiny",
            "isCompleted": True,
            "generatedImagePath": None,
        }

    def test_from_dict(self):
        meta = ImageMetadata.from_dict({"tagType": "Icon", "isCompleted": True})
        assert meta.tag_type == "Icon"
        assert meta.is_completed is True
        assert meta.custom_prompt == ""


class TestGlobalSettings:
    def test_default_tag_types_not_empty(self):
        settings = GlobalSettings()
        assert settings.custom_tag_types == DEFAULT_TAG_TYPES
        assert settings.custom_tag_types is not DEFAULT_TAG_TYPES

    def test_tag_types_deduplicated_in_order(self):
        settings = GlobalSettings.from_dict({"customTagTypes": ["B", "A", "B", "C", "A"]})
        assert settings.custom_tag_types == ["B", "A", "C"]


class TestAISettings:
    def test_repr_masks_api_key(self):
        settings = AISettings(api_key="AIzaSECRETKEY1234")
        assert "AIzaSECRETKEY1234" not in repr(settings)
        assert "1234" in repr(settings)

    def test_mask_secret(self):
        assert mask_secret("") == "(not set)"
        assert mask_secret("abc") == "***"
        assert mask_secret("abcdefgh") == "****efgh"


class TestProjectConfig:
    def test_create_default(self, tmp_path):
        config = ProjectConfig.create_default(str(tmp_path / "mygame"))
        assert config.version == CONFIG_VERSION
        assert config.project_name == "mygame"
        assert config.ai_settings.model == DEFAULT_MODEL
        assert config.global_settings.custom_tag_types
        assert config.statistics.total_images == 0

    def test_serialization_roundtrip(self, tmp_path):
        config = ProjectConfig.create_default(str(tmp_path))
        config.global_settings.global_prompt = "pixel art"
        config.image_metadata["/a.png"] = ImageMetadata(tag_type="UI", is_completed=True)
        config.recompute_completed()

        loaded = ProjectConfig.from_dict(config.to_dict())

        assert loaded.global_settings.global_prompt == "pixel art"
        assert loaded.image_metadata["/a.png"].tag_type == "UI"
        assert loaded.statistics.completed_images == 1

    def test_from_dict_fills_missing_sections(self):
        config = ProjectConfig.from_dict({"version": "0.1", "rootPath": "/game"})
        assert config.root_path == "/game"
        assert config.ai_settings.model == DEFAULT_MODEL
        assert config.global_settings.custom_tag_types == DEFAULT_TAG_TYPES
        assert config.image_metadata == {}

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ValueError):
            ProjectConfig.from_dict(["not", "a", "config"])

    def test_needs_migration(self):
        current = ProjectConfig.create_default("/game").to_dict()
        assert not ProjectConfig.needs_migration(current)

        outdated = dict(current, version="0.9.0")
        assert ProjectConfig.needs_migration(outdated)

        missing = dict(current)
        del missing["aiSettings"]
        assert ProjectConfig.needs_migration(missing)

    def test_count_completed(self):
        config = ProjectConfig.create_default("/game")
        config.image_metadata = {
            "/a.png": ImageMetadata(is_completed=True),
            "/b.png": ImageMetadata(is_completed=False),
            "/c.png": ImageMetadata(is_completed=True),
        }
        assert config.count_completed() == 2


class TestModelId:
    def test_values(self):
        assert ModelId.GEMINI_FLASH_IMAGE.value == "gemini-2.5-flash-image"
        assert ModelId.IMAGEN_4.value == "imagen-4.0-generate-001"

    def test_from_string_exact(self):
        assert ModelId.from_string("gemini-2.5-flash-image") == ModelId.GEMINI_FLASH_IMAGE
        assert ModelId.from_string("  Gemini-3-Pro-Image-Preview ") == ModelId.GEMINI_PRO_IMAGE

    def test_from_string_no_substring_matching(self):
        with pytest.raises(ValueError) as exc_info:
            ModelId.from_string("my-gemini-model")
        assert "Unsupported model" in str(exc_info.value)

        with pytest.raises(ValueError):
            ModelId.from_string("imagen")


class TestGenerationRequest:
    def test_repr_hides_key_and_bytes(self):
        request = GenerationRequest(
            api_key="SECRETSECRET9876",
            model=ModelId.GEMINI_FLASH_IMAGE,
            prompt="red",
            output_path="/tmp/out",
            source_image=b"x" * 10,
        )
        text = repr(request)
        assert "SECRETSECRET9876" not in text
        assert "<10 bytes>" in text


class TestUnknownKeys:
    """Keys written by other versions are kept, not dropped."""

    def test_image_metadata_keeps_extra_fields(self):
        meta = ImageMetadata.from_dict({"tagType": "UI", "reviewer": "sam"})
        assert meta.extra == {"reviewer": "sam"}
        assert meta.to_dict()["reviewer"] == "sam"

    def test_known_fields_win_over_extra(self):
        meta = ImageMetadata(tag_type="Icon", extra={"tagType": "stale"})
        assert meta.to_dict()["tagType"] == "Icon"

    def test_project_config_keeps_top_level_keys(self):
        data = ProjectConfig.create_default("/game").to_dict()
        data["exportSettings"] = {"atlas": True}

        config = ProjectConfig.from_dict(data)

        assert config.extra == {"exportSettings": {"atlas": True}}
        assert config.to_dict()["exportSettings"] == {"atlas": True}

    def test_default_config_has_no_extra(self):
        config = ProjectConfig.from_dict(ProjectConfig.create_default("/game").to_dict())
        assert config.extra == {}
