"""
Derivation pipeline: fixed-width thumbnails computed on every request.

Nothing is cached; each call reads the full source object from the primary
store, decodes it with Pillow, scales it to the configured width keeping the
aspect ratio and re-encodes it at the configured quality.
"""
import io
import logging
import time
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

from blob_gateway.dependencies import ServiceContext
from blob_gateway.errors import DerivationError

logger = logging.getLogger(__name__)

FALLBACK_FORMAT = "PNG"


@dataclass
class Thumbnail:
    data: bytes
    content_type: str
    width: int
    height: int
    source_checksum: str = ""


def make_thumbnail(data: bytes, width: int, quality: int) -> Thumbnail:
    """
    Scale an encoded image to `width` pixels wide.

    The height is `source_height * width // source_width` (never below one
    pixel). The output keeps the source format when Pillow can write it and
    falls back to PNG otherwise.

    :raises DerivationError: if `data` is empty or cannot be decoded or encoded.
    """
    if not data:
        raise DerivationError("empty data to make thumbnail")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            source_width, source_height = image.size
            image_format = image.format if image.format in Image.SAVE else FALLBACK_FORMAT
            height = max(1, source_height * width // source_width)
            resized = image.resize((width, height))
        if image_format == "JPEG" and resized.mode not in ("RGB", "L", "CMYK"):
            resized = resized.convert("RGB")
        output = io.BytesIO()
        resized.save(output, format=image_format, quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, KeyError) as e:
        raise DerivationError(f"error when make thumbnail: {e}") from e
    return Thumbnail(
        data=output.getvalue(),
        content_type=Image.MIME.get(image_format, "application/octet-stream"),
        width=width,
        height=height,
    )


def derive_thumbnail(context: ServiceContext, key: str, uid: Optional[str] = None) -> Thumbnail:
    """Read `key` fully from the primary store and return its thumbnail."""
    begin = time.perf_counter()
    settings = context.settings
    with context.store.checkout() as handle:
        stored = handle.open(key)
        try:
            data = b"".join(stored.iter_chunks())
        finally:
            stored.close()

    try:
        thumbnail = make_thumbnail(data, settings.thumbnail_width, settings.compress_quality)
    except DerivationError as e:
        logger.error(f"{e.message} for {key}")
        raise
    thumbnail.source_checksum = stored.checksum or ""

    if settings.debug:
        elapsed_ms = (time.perf_counter() - begin) * 1000
        logger.info(f"thumbnail {uid or '-'} {key} {elapsed_ms:.0f}ms")
    return thumbnail
