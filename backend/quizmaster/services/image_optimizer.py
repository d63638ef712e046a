"""
Image downsizing and JPEG re-encoding before recognition.

Sheets are shrunk so the longer side is at most max_dimension pixels and
re-encoded at a reduced JPEG quality, keeping request payloads well under
the recognition service's size limits while staying legible.
"""

import io
import asyncio
import base64

from PIL import Image, ImageOps, UnidentifiedImageError

from quizmaster.config import logger
from quizmaster.exceptions import ImageDecodeError

DEFAULT_MAX_DIMENSION = 800
DEFAULT_JPEG_QUALITY = 70


def scaled_size(width: int, height: int, max_dimension: int = DEFAULT_MAX_DIMENSION):
    """Uniformly scale (width, height) so the larger side fits max_dimension."""
    larger = max(width, height)
    if larger <= max_dimension:
        return width, height
    factor = max_dimension / larger
    return max(1, round(width * factor)), max(1, round(height * factor))


def optimize_image(image_bytes: bytes, max_dimension: int = DEFAULT_MAX_DIMENSION,
                   quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Decode, downsample and re-encode an image as JPEG. Always re-encodes."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e

    # Phone photos carry their rotation in EXIF
    img = ImageOps.exif_transpose(img)

    new_size = scaled_size(img.width, img.height, max_dimension)
    if new_size != img.size:
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    optimized = buffer.getvalue()
    logger.info(f"Optimized image {len(image_bytes)} -> {len(optimized)} bytes at {new_size[0]}x{new_size[1]}")
    return optimized


async def optimize_image_async(image_bytes: bytes, max_dimension: int = DEFAULT_MAX_DIMENSION,
                               quality: int = DEFAULT_JPEG_QUALITY, timeout: float = 15.0) -> bytes:
    """Run optimize_image off the event loop with a hard decode timeout."""
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(optimize_image, image_bytes, max_dimension, quality),
            timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise ImageDecodeError(f"Image decode timed out after {timeout}s") from e


def to_data_url(jpeg_bytes: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode()
