"""Map detection boxes from OCR-processing space back to the original image."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from models.schemas import Detection, ImageSize, Rect

logger = logging.getLogger(__name__)


def _ratio(original: Optional[int], processed: Optional[int]) -> float:
    if not original or not processed or original <= 0 or processed <= 0:
        return 1.0
    return original / processed


def scale_factors(original: ImageSize, processed: ImageSize) -> tuple[float, float]:
    """Return ``(scale_x, scale_y)``; an axis with a missing size scales by 1."""
    return (
        _ratio(original.width, processed.width),
        _ratio(original.height, processed.height),
    )


def scale_detections(
    detections: Sequence[Detection],
    scale_x: float,
    scale_y: float,
) -> list[Detection]:
    """Multiply every rect by the given factors; inputs are left untouched."""
    return [
        d.model_copy(update={"bbox": Rect(
            left=d.bbox.left * scale_x,
            top=d.bbox.top * scale_y,
            width=d.bbox.width * scale_x,
            height=d.bbox.height * scale_y,
        )})
        for d in detections
    ]


def rescale(
    detections: Sequence[Detection],
    original_size: ImageSize,
    processed_size: ImageSize,
) -> list[Detection]:
    """Rescale deduplicated detections into original-image coordinates.

    Must be applied exactly once, after deduplication.
    """
    sx, sy = scale_factors(original_size, processed_size)
    logger.info(
        f"Rescaling {len(detections)} detections "
        f"{processed_size.width}x{processed_size.height} → "
        f"{original_size.width}x{original_size.height} "
        f"(scale {sx:.3f}x, {sy:.3f}y)"
    )
    return scale_detections(detections, sx, sy)
