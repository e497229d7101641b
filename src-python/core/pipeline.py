"""End-to-end redaction of one uploaded image.

original bytes → preprocess → OCR → classify → rescale → redact.

Each call is independent; the only shared resource is the OCR engine slot
held by :func:`core.ocr.engine.ocr_session` for the OCR-dependent steps.
"""

from __future__ import annotations

import logging
import time

from core.config import config
from core.anonymizer.engine import redact
from core.detection.classifier import classify
from core.detection.rescale import rescale
from core.ocr.engine import ocr_session
from core.ocr.preprocess import preprocess_image
from models.schemas import RedactionResult

logger = logging.getLogger(__name__)


def process_image(image_bytes: bytes) -> RedactionResult:
    """Detect PII in *image_bytes* and return the redacted PNG with detections.

    Raises:
        ImageProcessingError: the image cannot be decoded or encoded.
        RuntimeError: OCR is unavailable or failed.
    """
    t0 = time.perf_counter()
    prepared = preprocess_image(image_bytes)

    with ocr_session() as engine:
        ocr = engine.recognize(prepared.data)
        raw = classify(ocr.words, ocr.lines, config.dedup_overlap_threshold)
        detections = rescale(raw, prepared.original_size, prepared.processed_size)
        redacted = redact(image_bytes, detections)

    logger.info(
        f"Redaction complete: {len(detections)} detections "
        f"in {time.perf_counter() - t0:.2f}s",
        extra={"detections": len(detections)},
    )
    return RedactionResult(
        extracted_text=ocr.text.strip(),
        detections=detections,
        original_size=prepared.original_size,
        processed_size=prepared.processed_size,
        redacted_png=redacted,
    )
