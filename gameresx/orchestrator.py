"""
Generate, reconcile and replace pipeline.

For one asset: compose the prompt, call the provider for the configured model,
resize the result to the true original's dimensions when they differ, swap it
in through the BackupEngine and mark the asset completed. Every entry point
returns an outcome instead of raising.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Optional

from gameresx.backup import BackupEngine
from gameresx.config import Config
from gameresx.generators import mime_type_for
from gameresx.generators.manager import ProviderManager
from gameresx.imaging import ImageMeasurement
from gameresx.models import (
    DimensionInfo,
    FolderGenerateSummary,
    GenerateOutcome,
    GenerationRequest,
    ModelId,
    ProjectConfig,
)
from gameresx.project import ProjectManager, normalize_path

logger = logging.getLogger(__name__)

PROMPT_SEPARATOR = ", "
TEMP_SUFFIX = ".temp"
RESIZED_SUFFIX = ".resized"

ProgressCallback = Callable[[int, int, str], None]


def compose_prompt(global_prompt: str, custom_prompt: Optional[str]) -> str:
    """Join the global prompt and the per-asset prompt, skipping empty parts."""
    parts = [p.strip() for p in (global_prompt, custom_prompt) if p and p.strip()]
    return PROMPT_SEPARATOR.join(parts)


class GenerationOrchestrator:
    """Top-level generation workflow over a project root."""

    def __init__(
        self,
        providers: Optional[ProviderManager] = None,
        measurement: Optional[ImageMeasurement] = None,
        backups: Optional[BackupEngine] = None,
        user_config: Optional[Config] = None,
        project_factory: Callable[[str], ProjectManager] = ProjectManager,
    ):
        self.providers = providers or ProviderManager()
        self.measurement = measurement or ImageMeasurement()
        self.backups = backups or BackupEngine()
        self.user_config = user_config
        self.project_factory = project_factory

    def _resolve_api_key(self, config: ProjectConfig) -> str:
        """Project key first, then the user-level config and environment."""
        if config.ai_settings.api_key:
            return config.ai_settings.api_key
        if self.user_config is None:
            self.user_config = Config.load()
        return self.user_config.api_keys.google

    def generate_and_replace(
        self,
        root_path: str,
        asset_path: str,
        custom_prompt: Optional[str] = None,
        model_override: Optional[str] = None,
    ) -> GenerateOutcome:
        """Generate a new image for asset_path and swap it in."""
        asset_path = normalize_path(asset_path)
        temp_output = asset_path + TEMP_SUFFIX
        resized_output = temp_output + RESIZED_SUFFIX

        try:
            logger.info(f"Generate and replace: {asset_path}")
            project = self.project_factory(root_path)
            config = project.load_config()
            metadata = config.image_metadata.get(asset_path)

            prompt = compose_prompt(
                config.global_settings.global_prompt,
                custom_prompt or (metadata.custom_prompt if metadata else ""),
            )
            if not prompt:
                return GenerateOutcome(
                    success=False,
                    message="Prompt required: set a global or per-image prompt first",
                )

            model_name = model_override or config.ai_settings.model
            try:
                model = ModelId.from_string(model_name)
            except ValueError as e:
                return GenerateOutcome(success=False, message=str(e))

            request = GenerationRequest(
                api_key=self._resolve_api_key(config),
                model=model,
                prompt=prompt,
                output_path=temp_output,
                source_image=Path(asset_path).read_bytes(),
                source_mime_type=mime_type_for(asset_path),
            )
            result = self.providers.generate(request)
            if not result.success or not result.output_path:
                return GenerateOutcome(success=False, message=result.message)

            original_path = self.backups.resolve_original_path(asset_path)
            comparison = self.measurement.compare(original_path, result.output_path)
            original = comparison.original
            generated = comparison.generated

            file_to_swap = result.output_path
            needs_resize = not comparison.is_same
            if needs_resize:
                logger.info(
                    f"Dimension mismatch: original {original.width}x{original.height}, "
                    f"generated {generated.width}x{generated.height}; resizing"
                )
                self.measurement.resize(result.output_path, resized_output, original.width, original.height)
                file_to_swap = resized_output

            if not self.backups.replace(asset_path, file_to_swap):
                return GenerateOutcome(success=False, message="Image generated but replace failed")

            project.update_image_metadata(
                asset_path,
                is_completed=True,
                generated_image_path=asset_path,
            )

            if needs_resize:
                message = (
                    f"Image generated and resized to the original size "
                    f"({original.width}x{original.height})"
                )
            else:
                message = "Image generated and replaced"

            return GenerateOutcome(
                success=True,
                message=message,
                dimension_info=DimensionInfo(
                    original=original.dimensions,
                    generated=generated.dimensions,
                    needs_resize=needs_resize,
                ),
            )

        except Exception as e:
            logger.exception(f"Generation failed for {asset_path}")
            return GenerateOutcome(success=False, message=str(e) or type(e).__name__)

        finally:
            for leftover in (temp_output, resized_output):
                try:
                    os.remove(leftover)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning(f"Could not remove temporary file {leftover}: {e}")

    def generate_folder_assets(
        self,
        root_path: str,
        paths: Iterable[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> FolderGenerateSummary:
        """Run generate_and_replace for each path in order, never stopping early."""
        paths = list(paths)
        total = len(paths)
        summary = FolderGenerateSummary()

        for index, path in enumerate(paths, start=1):
            if on_progress:
                on_progress(index, total, path)

            outcome = self.generate_and_replace(root_path, path)
            if outcome.success:
                summary.success += 1
                summary.messages.append(f"✓ {path}: ok")
            else:
                summary.failed += 1
                summary.messages.append(f"✗ {path}: {outcome.message}")

        return summary
