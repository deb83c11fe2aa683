"""Thumbnail generation -- downsizes embedded artwork with Pillow."""

from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from nocturne.utils.constants import (
    DEFAULT_THUMBNAIL_MAX_DIMENSION,
    DEFAULT_THUMBNAIL_QUALITY,
)
from nocturne.utils.logger import get_logger

logger = get_logger("core.thumbnails")


def make_thumbnail(
    artwork: bytes | None,
    max_dimension: int = DEFAULT_THUMBNAIL_MAX_DIMENSION,
    quality: int = DEFAULT_THUMBNAIL_QUALITY,
) -> bytes | None:
    """Downsize artwork to fit a square box and re-encode it as JPEG.

    The aspect ratio is kept; images already smaller than the box are only
    re-encoded.

    Args:
        artwork: Raw image bytes (any format Pillow can decode).
        max_dimension: Longest edge of the result, in pixels.
        quality: JPEG quality (1-95).

    Returns:
        JPEG bytes, or None if there is no artwork or it cannot be decoded.
    """
    if not artwork:
        return None

    try:
        with Image.open(BytesIO(artwork)) as img:
            # JPEG has no alpha channel or palette
            if img.mode != "RGB":
                img = img.convert("RGB")
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            output = BytesIO()
            img.save(output, format="JPEG", quality=quality)
            return output.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning("Could not generate thumbnail: %s", e)
        return None
