"""Pydantic data models for the scan redactor."""

from __future__ import annotations

import enum
import uuid
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PIIType(str, enum.Enum):
    """Categories of personally identifiable information."""
    EMAIL = "email"
    PHONE = "phone"
    CREDIT_CARD = "credit_card"
    DATE = "date"
    ADDRESS = "address"
    NAME = "name"
    ID = "id"


class DetectionSource(str, enum.Enum):
    """Which classifier pass produced the match."""
    TOKEN = "TOKEN"      # single OCR word
    WINDOW = "WINDOW"    # sliding window of consecutive words
    LINE = "LINE"        # whole OCR line


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class BBox(BaseModel):
    """Corner-form bounding box in pixels (origin top-left)."""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0


class Rect(BaseModel):
    """Origin + extent rectangle used once tokens are aggregated."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


class ImageSize(BaseModel):
    """Pixel dimensions; ``None`` when the codec could not report them."""
    width: Optional[int] = None
    height: Optional[int] = None


# ---------------------------------------------------------------------------
# OCR output
# ---------------------------------------------------------------------------

class Token(BaseModel):
    """One OCR-recognized word in OCR-processing pixel space."""
    text: str
    bbox: BBox
    confidence: float = 85.0         # 0 – 100, Tesseract scale
    block_index: int = 0
    paragraph_index: int = 0
    line_index: int = 0
    word_index: int = 0


class Line(BaseModel):
    """A full OCR text line."""
    text: str
    bbox: BBox
    confidence: float = 85.0
    words: list[Token] = []


class OCRResult(BaseModel):
    """Everything the OCR engine hands back for one image."""
    text: str = ""
    words: list[Token] = []
    lines: list[Line] = []
    width: Optional[int] = None
    height: Optional[int] = None


# ---------------------------------------------------------------------------
# PII Detection
# ---------------------------------------------------------------------------

class Detection(BaseModel):
    """A classified PII span."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: PIIType
    text: str
    confidence: float
    bbox: Rect
    source: DetectionSource = DetectionSource.TOKEN


class RedactionResult(BaseModel):
    """Output of one end-to-end redaction request."""
    extracted_text: str = ""
    detections: list[Detection] = []
    original_size: ImageSize = Field(default_factory=ImageSize)
    processed_size: ImageSize = Field(default_factory=ImageSize)
    redacted_png: bytes = b""


# ---------------------------------------------------------------------------
# API Request / Response schemas
# ---------------------------------------------------------------------------

class OCRPayload(BaseModel):
    """Raw OCR output posted by callers that run their own engine.

    Word and line entries are left as plain dicts: their bbox shapes vary
    between engines and are canonicalized by the normalizer.
    """
    words: list[dict] = []
    lines: list[dict] = []


class ClassifyResponse(BaseModel):
    detections: list[Detection]
    count: int


class RedactResponse(BaseModel):
    extracted_text: str
    detections: list[Detection]
    preview_image: str                 # data URL of the upload, as received
    redacted_image: str                # data URL of the redacted PNG
    original_size: ImageSize
    processed_size: ImageSize
