"""Tests for the end-to-end redaction pipeline with a stubbed OCR engine."""

from __future__ import annotations

import io
from contextlib import contextmanager
from unittest.mock import patch

import pytest
from PIL import Image

from models.schemas import BBox, OCRResult, PIIType, Token
from core.anonymizer.utils import ImageProcessingError
from core.pipeline import process_image


def _image_bytes(size=(500, 250)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, "white").save(buf, "PNG")
    return buf.getvalue()


class _FakeEngine:
    def __init__(self, result: OCRResult | None = None, error: Exception | None = None):
        self.result = result or OCRResult()
        self.error = error
        self.seen: list[bytes] = []

    def recognize(self, image_bytes: bytes) -> OCRResult:
        self.seen.append(image_bytes)
        if self.error is not None:
            raise self.error
        return self.result


def _session(engine: _FakeEngine, events: list[str]):
    @contextmanager
    def fake_ocr_session():
        events.append("acquire")
        try:
            yield engine
        finally:
            events.append("release")
    return fake_ocr_session


@pytest.fixture(autouse=True)
def _fixed_target_width(monkeypatch):
    from core.config import config
    monkeypatch.setattr(config, "ocr_target_width", 2000)


class TestProcessImage:
    def test_detections_are_mapped_to_original_space(self):
        # 500x250 upload → 2000x1000 OCR image, so OCR boxes shrink by 4
        email = Token(text="jane@example.com", bbox=BBox(x0=400, y0=400, x1=800, y1=440), confidence=92)
        engine = _FakeEngine(OCRResult(text="jane@example.com", words=[email], width=2000, height=1000))
        events: list[str] = []

        with patch("core.pipeline.ocr_session", _session(engine, events)):
            result = process_image(_image_bytes())

        assert events == ["acquire", "release"]
        assert result.extracted_text == "jane@example.com"
        assert (result.original_size.width, result.original_size.height) == (500, 250)
        assert (result.processed_size.width, result.processed_size.height) == (2000, 1000)

        [det] = result.detections
        assert det.type == PIIType.EMAIL
        assert det.bbox.left == pytest.approx(100)
        assert det.bbox.top == pytest.approx(100)
        assert det.bbox.width == pytest.approx(100)
        assert det.bbox.height == pytest.approx(10)

        redacted = Image.open(io.BytesIO(result.redacted_png))
        assert redacted.format == "PNG"
        assert redacted.size == (500, 250)
        assert redacted.getpixel((150, 105)) == (0, 0, 0)
        assert redacted.getpixel((50, 50)) == (255, 255, 255)

    def test_ocr_sees_preprocessed_image(self):
        engine = _FakeEngine()
        with patch("core.pipeline.ocr_session", _session(engine, [])):
            process_image(_image_bytes())
        [seen] = engine.seen
        assert Image.open(io.BytesIO(seen)).size == (2000, 1000)

    def test_no_words_returns_clean_copy(self):
        engine = _FakeEngine(OCRResult())
        with patch("core.pipeline.ocr_session", _session(engine, [])):
            result = process_image(_image_bytes())
        assert result.detections == []
        assert result.extracted_text == ""
        redacted = Image.open(io.BytesIO(result.redacted_png)).convert("RGB")
        assert redacted.getcolors() == [(500 * 250, (255, 255, 255))]

    def test_session_released_when_ocr_fails(self):
        events: list[str] = []
        engine = _FakeEngine(error=RuntimeError("OCR recognition failed: timeout"))
        with patch("core.pipeline.ocr_session", _session(engine, events)):
            with pytest.raises(RuntimeError, match="timeout"):
                process_image(_image_bytes())
        assert events == ["acquire", "release"]

    def test_session_released_when_classification_fails(self):
        events: list[str] = []
        engine = _FakeEngine(OCRResult(words=[Token(text="x", bbox=BBox(x0=0, y0=0, x1=1, y1=1))]))
        with patch("core.pipeline.ocr_session", _session(engine, events)), \
                patch("core.pipeline.classify", side_effect=ValueError("bad rule")):
            with pytest.raises(ValueError):
                process_image(_image_bytes())
        assert events == ["acquire", "release"]

    def test_undecodable_upload_never_reaches_ocr(self):
        events: list[str] = []
        with patch("core.pipeline.ocr_session", _session(_FakeEngine(), events)):
            with pytest.raises(ImageProcessingError):
                process_image(b"definitely not an image")
        assert events == []
