"""Image measurement and resizing helpers."""

import logging
import os

from PIL import Image

from gameresx.models import DimensionComparison, ImageInfo

logger = logging.getLogger(__name__)

# Formats that cannot store an alpha channel
_NO_ALPHA_FORMATS = {"JPEG"}


class ImageMeasurement:
    """Measure, compare and resize raster images."""

    def measure(self, path: str) -> ImageInfo:
        with Image.open(path) as img:
            width, height = img.size
            fmt = (img.format or "unknown").lower()
        return ImageInfo(
            width=width,
            height=height,
            format=fmt,
            size_bytes=os.path.getsize(path),
        )

    def compare(self, original_path: str, generated_path: str) -> DimensionComparison:
        original = self.measure(original_path)
        generated = self.measure(generated_path)
        return DimensionComparison(
            is_same=original.dimensions == generated.dimensions,
            original=original,
            generated=generated,
        )

    def resize(self, input_path: str, output_path: str, width: int, height: int) -> None:
        """Resize to exactly width x height with Lanczos resampling.

        Aspect ratio is not preserved. The output keeps the input's format
        regardless of the output file name.
        """
        logger.debug(f"Resizing {input_path} -> {width}x{height}")

        with Image.open(input_path) as img:
            fmt = img.format or "PNG"
            resized = img.resize((width, height), Image.Resampling.LANCZOS)

        if fmt in _NO_ALPHA_FORMATS and resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")

        resized.save(output_path, format=fmt)
        logger.debug(f"Resize complete: {output_path}")
