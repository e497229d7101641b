"""Detection pipeline configuration constants.

This module centralizes the magic numbers used by the normalizer,
classifier and deduplicator. Values that operators may want to tune at
runtime (overlap threshold, OCR settings) live in ``core.config`` instead.
"""

from __future__ import annotations

# =============================================================================
# CONFIDENCE
# =============================================================================
# Tesseract reports word confidence on a 0–100 scale.

DEFAULT_TOKEN_CONFIDENCE: float = 85.0
"""Confidence assumed when the OCR engine omits it for a word or line."""

LINE_NAME_CONFIDENCE: float = 88.0
"""Fixed confidence for whole lines classified as names by casing alone.
The line's own OCR confidence is ignored for this heuristic."""

# =============================================================================
# GEOMETRY FALLBACKS
# =============================================================================

FALLBACK_BOX_WIDTH: float = 100.0
"""Width used for a token whose bbox cannot be reconstructed."""

FALLBACK_BOX_HEIGHT: float = 20.0
"""Height used for a token whose bbox cannot be reconstructed."""

LINE_FALLBACK_EXTENT: float = 1.0
"""Width/height used for a line reported without any geometry."""

MIN_BBOX_DIMENSION: float = 1.0
"""Minimum detection width/height in pixels."""

# =============================================================================
# SPAN LIMITS
# =============================================================================

MAX_WINDOW_SPAN: int = 6
"""Longest run of consecutive words tested by the sliding-window pass."""

LINE_NAME_MIN_WORDS: int = 2
LINE_NAME_MAX_WORDS: int = 5
"""Word-count bounds for the line-level name heuristic."""

# =============================================================================
# DEDUPLICATION
# =============================================================================

DEDUP_OVERLAP_RATIO: float = 0.6
"""Same-type candidates whose intersection covers more than this share of
the newer candidate's area are treated as duplicates."""
