"""Token normalizer — canonicalizes OCR word/line geometry.

OCR engines disagree on bounding-box shape: Tesseract.js reports corner
pairs (``x0,y0,x1,y1``), others report origin + extent (``x,y,w,h``), and
some entries arrive with fields missing altogether. Everything downstream
works on a corner-form :class:`BBox`, so this module is the only place that
has to care. Malformed geometry is logged and replaced with a small
deterministic box; it never aborts the request.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Optional

from models.schemas import BBox, Line, Token
from core.detection.detection_config import (
    DEFAULT_TOKEN_CONFIDENCE,
    FALLBACK_BOX_HEIGHT,
    FALLBACK_BOX_WIDTH,
    LINE_FALLBACK_EXTENT,
)

logger = logging.getLogger(__name__)


def _finite(value: Any) -> Optional[float]:
    """Return *value* as a float if it is a finite real number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _raw_bbox(raw: Mapping) -> Mapping:
    b = raw.get("bbox") or raw.get("boundingBox") or {}
    return b if isinstance(b, Mapping) else {}


def normalize_bbox(raw: Optional[Mapping], text: str = "") -> BBox:
    """Build a corner-form BBox from whatever geometry *raw* provides.

    Resolution order per coordinate: explicit corner, then origin + extent.
    If any corner is still unknown, fall back to a box anchored at the
    known origin (or 0,0) sized from the partial extent, defaulting to
    100×20.
    """
    b = raw if isinstance(raw, Mapping) else {}
    x, y = _finite(b.get("x")), _finite(b.get("y"))
    w, h = _finite(b.get("w")), _finite(b.get("h"))

    x0 = _finite(b.get("x0"))
    y0 = _finite(b.get("y0"))
    x1 = _finite(b.get("x1"))
    y1 = _finite(b.get("y1"))
    if x0 is None:
        x0 = x
    if y0 is None:
        y0 = y
    if x1 is None and x is not None and w is not None:
        x1 = x + w
    if y1 is None and y is not None and h is not None:
        y1 = y + h

    if x0 is None or y0 is None or x1 is None or y1 is None:
        logger.warning(f"Invalid bbox for token {text!r}: {dict(b)!r}")
        x0 = x0 if x0 is not None else 0.0
        y0 = y0 if y0 is not None else 0.0
        if x1 is None:
            x1 = x0 + (w if w is not None else FALLBACK_BOX_WIDTH)
        if y1 is None:
            y1 = y0 + (h if h is not None else FALLBACK_BOX_HEIGHT)

    return BBox(
        x0=min(x0, x1),
        y0=min(y0, y1),
        x1=max(x0, x1),
        y1=max(y0, y1),
    )


def _confidence(raw: Mapping) -> float:
    conf = _finite(raw.get("confidence"))
    return DEFAULT_TOKEN_CONFIDENCE if conf is None else conf


def normalize_token(raw: Any) -> Optional[Token]:
    """Convert one raw OCR word into a Token; None for blank/invalid entries."""
    if not isinstance(raw, Mapping):
        return None
    text = str(raw.get("text") or "").strip()
    if not text:
        return None
    return Token(
        text=text,
        bbox=normalize_bbox(_raw_bbox(raw), text),
        confidence=_confidence(raw),
        block_index=int(_finite(raw.get("block_index")) or 0),
        paragraph_index=int(_finite(raw.get("paragraph_index")) or 0),
        line_index=int(_finite(raw.get("line_index")) or 0),
        word_index=int(_finite(raw.get("word_index")) or 0),
    )


def normalize_line(raw: Any) -> Optional[Line]:
    """Convert one raw OCR line into a Line; None for blank/invalid entries.

    Lines reported without a bbox mapping get one synthesized from flat
    ``x``/``y``/``w``/``h`` (or ``width``/``height``) attributes.
    """
    if not isinstance(raw, Mapping):
        return None
    text = str(raw.get("text") or "").strip()
    if not text:
        return None

    geometry = _raw_bbox(raw)
    if not geometry:
        geometry = {
            "x": _finite(raw.get("x")) or 0.0,
            "y": _finite(raw.get("y")) or 0.0,
            "w": _finite(raw.get("w")) or _finite(raw.get("width")) or LINE_FALLBACK_EXTENT,
            "h": _finite(raw.get("h")) or _finite(raw.get("height")) or LINE_FALLBACK_EXTENT,
        }

    words = [t for t in (normalize_token(w) for w in raw.get("words") or []) if t]
    return Line(
        text=text,
        bbox=normalize_bbox(geometry, text),
        confidence=_confidence(raw),
        words=words,
    )


def normalize_ocr(data: Optional[Mapping]) -> tuple[list[Token], list[Line]]:
    """Normalize an ``{"words": [...], "lines": [...]}`` OCR payload."""
    data = data or {}
    tokens = [t for t in (normalize_token(w) for w in data.get("words") or []) if t]
    lines = [ln for ln in (normalize_line(l) for l in data.get("lines") or []) if ln]
    return tokens, lines
