"""Common image codec helpers shared by preprocessing and redaction.

Both sides must decode the upload identically (same EXIF orientation),
otherwise OCR coordinates and the redaction canvas disagree.
"""

from __future__ import annotations

import base64
import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

# File type constants
IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


class ImageProcessingError(RuntimeError):
    """The image codec could not decode or encode a buffer."""


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16-bit grayscale (PNG scans) down to 8-bit L.

    Pillow clips rather than scales when converting ``I``/``I;16`` to L or
    RGB, which turns every mid-tone white.
    """
    if img.mode != "I" and not img.mode.startswith("I;16"):
        return img
    gray = img.convert("I").point(lambda v: v * (1 / 256)).convert("L")
    # A 16-bit tRNS value means nothing at 8 bits
    gray.info.pop("transparency", None)
    return gray


def open_image(data: bytes) -> Image.Image:
    """Decode *data* fully and apply its EXIF orientation.

    Animated formats (GIF, WebP) are reduced to their first frame and
    16-bit grayscale is scaled to 8 bits.
    """
    if not data:
        raise ImageProcessingError("Empty image buffer")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        upright = ImageOps.exif_transpose(img)
        if upright is None:
            upright = img
        return _to_8bit(upright)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageProcessingError(f"Cannot decode image: {exc}") from exc


def pixel_mode(img: Image.Image) -> str:
    """Pick RGB or RGBA so that transparency survives re-encoding."""
    if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
        return "RGBA"
    return "RGB"


def encode_png(img: Image.Image) -> bytes:
    """Encode *img* as PNG.  No metadata (EXIF, text chunks) is written."""
    buf = io.BytesIO()
    try:
        img.save(buf, "PNG")
    except (OSError, ValueError) as exc:
        raise ImageProcessingError(f"Cannot encode PNG: {exc}") from exc
    return buf.getvalue()


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
