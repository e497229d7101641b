"""Redaction engine — composites opaque blocks over detected PII.

Output is always PNG so the caller gets the same lossless format whether
or not anything was redacted.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from PIL import ImageColor, ImageDraw

from core.config import config
from core.anonymizer.utils import (
    ImageProcessingError,
    encode_png,
    open_image,
    pixel_mode,
)
from models.schemas import Detection, Rect

logger = logging.getLogger(__name__)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def clamp_rect(rect: Rect, img_w: int, img_h: int) -> tuple[int, int, int, int]:
    """Snap *rect* outward to whole pixels inside a ``img_w × img_h`` canvas.

    Every pixel the rect touches is covered.  Returns
    ``(left, top, width, height)`` with ``left ∈ [0, W-1]``,
    ``top ∈ [0, H-1]`` and each side at least 1 px and no further than the
    canvas edge.
    """
    img_w = max(1, img_w)
    img_h = max(1, img_h)
    right = math.ceil(rect.left + rect.width)
    bottom = math.ceil(rect.top + rect.height)
    left = _clamp(math.floor(rect.left), 0, img_w - 1)
    top = _clamp(math.floor(rect.top), 0, img_h - 1)
    width = _clamp(right - left, 1, img_w - left)
    height = _clamp(bottom - top, 1, img_h - top)
    return left, top, width, height


def redact(
    image_bytes: bytes,
    detections: Sequence[Detection],
    fill: Optional[str] = None,
) -> bytes:
    """Return a PNG of *image_bytes* with every detection blacked out.

    Boxes must already be in original-image coordinates.  With no
    detections the image is still decoded and re-encoded.

    Raises:
        ImageProcessingError: the buffer cannot be decoded or encoded.
    """
    img = open_image(image_bytes)
    try:
        canvas = img.convert(pixel_mode(img))
    except (OSError, ValueError) as exc:
        raise ImageProcessingError(f"Cannot convert image: {exc}") from exc
    finally:
        img.close()

    try:
        if detections:
            try:
                color = ImageColor.getrgb(fill or config.redaction_fill)
            except ValueError:
                logger.warning(f"Invalid redaction fill {fill or config.redaction_fill!r}, using black")
                color = (0, 0, 0)
            if canvas.mode == "RGBA":
                color = (*color[:3], 255)
            else:
                color = color[:3]

            img_w, img_h = canvas.size
            draw = ImageDraw.Draw(canvas)
            for det in detections:
                left, top, width, height = clamp_rect(det.bbox, img_w, img_h)
                # PIL rectangles include their end coordinate
                draw.rectangle(
                    [left, top, left + width - 1, top + height - 1],
                    fill=color,
                )
            logger.info(f"Redacted {len(detections)} regions on {img_w}x{img_h} image")

        return encode_png(canvas)
    finally:
        canvas.close()
