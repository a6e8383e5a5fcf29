"""
Recipe Share Backend — Image Optimization Service
===================================================

What:  Turns an uploaded photo into a compact WebP ready for storage.
Why:   Phone photos arrive as 4-12MB JPEGs in arbitrary orientation. Storing
       them as-is wastes storage and makes recipe lists slow to load.
How:   Pillow decodes the upload, applies the EXIF orientation, shrinks it to
       fit inside 1200×900 (never enlarging), and re-encodes it as WebP at
       quality 80. The CPU-bound work runs in a worker thread.
Who:   Called by RecipeService before every upload.

Security Model:
    1. Size check before decoding (bounded memory)
    2. Content is decoded by Pillow, not trusted by extension or MIME header
    3. Only JPEG, PNG, WebP and GIF sources are accepted
    4. Decompression bombs are rejected by Pillow's pixel limit
"""

import asyncio
import dataclasses
import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from recipeshare.config import settings
from recipeshare.exceptions import ImageProcessingError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = {"JPEG", "PNG", "WEBP", "GIF"}
MAX_DIMENSIONS = (1200, 900)
WEBP_QUALITY = 80


@dataclasses.dataclass(frozen=True)
class ImagePayload:
    """Raw bytes of an uploaded image plus the client's filename."""

    filename: str
    content: bytes
    content_type: Optional[str] = None


class ImageService:
    """
    Validates and optimizes uploaded images.

    Args:
        max_file_size: Override settings.max_file_size (used in tests)
    """

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_size(self, payload: ImagePayload) -> None:
        """
        Raises:
            ValidationError: empty upload or larger than max_file_size
        """
        size = len(payload.content)
        if size == 0:
            raise ValidationError("Uploaded image is empty", field="image")
        if size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=f"Image size ({size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    async def optimize(self, payload: ImagePayload) -> bytes:
        """
        Returns the optimized WebP bytes for `payload`.

        Raises:
            ValidationError:      empty or oversized upload
            ImageProcessingError: not a decodable image in a supported format
        """
        self.validate_size(payload)
        optimized = await asyncio.to_thread(self._optimize_sync, payload.content)
        logger.info(
            "Optimized image %s: %d → %d bytes",
            payload.filename,
            len(payload.content),
            len(optimized),
        )
        return optimized

    @staticmethod
    def _optimize_sync(content: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(content)) as source:
                if source.format not in ALLOWED_FORMATS:
                    raise ImageProcessingError(
                        f"Unsupported image format '{source.format}'. Use JPEG, PNG, WebP or GIF.",
                        context={"format": source.format},
                    )
                image = ImageOps.exif_transpose(source)
                # thumbnail() only ever shrinks and keeps the aspect ratio
                image.thumbnail(MAX_DIMENSIONS)
                if image.mode not in ("RGB", "RGBA"):
                    has_alpha = "A" in image.getbands() or "transparency" in image.info
                    image = image.convert("RGBA" if has_alpha else "RGB")

                out = io.BytesIO()
                image.save(out, format="WEBP", quality=WEBP_QUALITY)
                return out.getvalue()
        except ImageProcessingError:
            raise
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning("Image optimization failed: %s", e)
            raise ImageProcessingError(
                "Failed to process image. Please upload a valid JPEG, PNG, WebP or GIF.",
                context={"error_type": type(e).__name__},
            ) from e


# ── Singleton Instance ────────────────────────────────────────────────────
image_service = ImageService()
