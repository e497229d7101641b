"""Bounding-box geometry utilities for detection processing."""

from __future__ import annotations

from models.schemas import Rect


def _rect_overlap_area(a: Rect, b: Rect) -> float:
    """Return the area of intersection between two rects."""
    ix0 = max(a.left, b.left)
    iy0 = max(a.top, b.top)
    ix1 = min(a.right, b.right)
    iy1 = min(a.bottom, b.bottom)
    if ix1 <= ix0 or iy1 <= iy0:
        return 0.0
    return (ix1 - ix0) * (iy1 - iy0)


def overlap_ratio(existing: Rect, candidate: Rect) -> float:
    """Share of *candidate*'s area covered by *existing*.

    Zero-area boxes on either side never overlap.
    """
    if existing.area <= 0 or candidate.area <= 0:
        return 0.0
    return _rect_overlap_area(existing, candidate) / candidate.area
