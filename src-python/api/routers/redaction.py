"""Image redaction and OCR-payload classification endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response

from core.anonymizer.utils import ImageProcessingError, to_data_url
from core.detection.classifier import classify
from core.detection.normalizer import normalize_ocr
from core.config import config
from core.pipeline import process_image
from models.schemas import (
    ClassifyResponse,
    OCRPayload,
    RedactionResult,
    RedactResponse,
)
from api.deps import read_upload, run_with_deadline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["redaction"])


async def _process(content: bytes) -> RedactionResult:
    try:
        return await run_with_deadline(process_image, content)
    except ImageProcessingError as e:
        logger.warning(f"Image processing failed: {e}", extra={"error_type": "encoding"})
        raise HTTPException(422, f"Failed to process image: {e}")
    except RuntimeError as e:
        logger.error(f"OCR failed: {e}", extra={"error_type": "ocr"})
        raise HTTPException(500, f"Failed to process image: {e}")


@router.post("/redact", response_model=RedactResponse)
async def redact_upload(file: UploadFile = File(...)) -> RedactResponse:
    """OCR an uploaded image, detect PII and return the redacted copy."""
    content, mime_type = await read_upload(file)
    result = await _process(content)
    return RedactResponse(
        extracted_text=result.extracted_text,
        detections=result.detections,
        preview_image=to_data_url(content, mime_type),
        redacted_image=to_data_url(result.redacted_png, "image/png"),
        original_size=result.original_size,
        processed_size=result.processed_size,
    )


@router.post("/redact/image")
async def redact_upload_image(file: UploadFile = File(...)) -> Response:
    """Same as ``/redact`` but returns the PNG body directly."""
    content, _ = await read_upload(file)
    result = await _process(content)
    return Response(
        content=result.redacted_png,
        media_type="image/png",
        headers={"X-Detections-Count": str(len(result.detections))},
    )


@router.post("/classify", response_model=ClassifyResponse)
async def classify_ocr(body: OCRPayload) -> ClassifyResponse:
    """Classify OCR output produced elsewhere.  Boxes stay in OCR space."""
    tokens, lines = normalize_ocr(body.model_dump())
    detections = classify(tokens, lines, config.dedup_overlap_threshold)
    return ClassifyResponse(detections=detections, count=len(detections))
