"""Image preprocessing ahead of OCR.

Tesseract does noticeably better on large, high-contrast grayscale input,
so uploads are upright-rotated, resized to a fixed width, converted to
grayscale, contrast-stretched and sharpened before recognition.  The sizes
before and after are kept so detections can be mapped back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageFilter, ImageOps

from core.config import config
from core.anonymizer.utils import ImageProcessingError, encode_png, open_image
from models.schemas import ImageSize

logger = logging.getLogger(__name__)


@dataclass
class PreparedImage:
    """PNG bytes fed to OCR plus the geometry needed to undo the resize."""
    data: bytes
    original_size: ImageSize
    processed_size: ImageSize


def preprocess_image(image_bytes: bytes, target_width: Optional[int] = None) -> PreparedImage:
    """Prepare *image_bytes* for OCR.

    Raises:
        ImageProcessingError: the buffer cannot be decoded or encoded.
    """
    target_width = target_width or config.ocr_target_width
    img = open_image(image_bytes)
    try:
        orig_w, orig_h = img.size
        logger.info(f"Uploaded image size: {orig_w}x{orig_h}")

        new_h = max(1, round(orig_h * target_width / max(1, orig_w)))
        try:
            work = img.convert("L").resize((target_width, new_h), Image.Resampling.LANCZOS)
            work = ImageOps.autocontrast(work)
            work = work.filter(ImageFilter.SHARPEN)
        except (OSError, ValueError) as exc:
            raise ImageProcessingError(f"Preprocessing failed: {exc}") from exc

        data = encode_png(work)
        logger.info(f"Preprocessed image size: {work.width}x{work.height}")
        return PreparedImage(
            data=data,
            original_size=ImageSize(width=orig_w, height=orig_h),
            processed_size=ImageSize(width=work.width, height=work.height),
        )
    finally:
        img.close()
