"""OCR engine — Tesseract integration for scanned images.

Recognition runs inside :func:`ocr_session`, which hands out one of a
bounded number of engine slots and always gives it back, whatever happens
between acquire and release.
"""

from __future__ import annotations

import io
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from core.config import config
from core.detection.classifier import group_lines
from core.detection.normalizer import normalize_token
from models.schemas import OCRResult, Token

logger = logging.getLogger(__name__)

_tesseract_available: bool | None = None

_slots: Optional[threading.BoundedSemaphore] = None
_slots_lock = threading.Lock()


def _check_tesseract() -> bool:
    """Return whether the ``tesseract`` binary answers a version query.

    The answer is cached in ``_tesseract_available``; the settings router
    clears it when ``tesseract_cmd`` changes.  Without an explicit
    ``tesseract_cmd`` the binary is looked up on PATH.
    """
    global _tesseract_available
    if _tesseract_available is None:
        import pytesseract

        if config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = config.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
        except Exception as exc:
            logger.warning(f"Tesseract OCR not available: {exc}")
            _tesseract_available = False
        else:
            logger.info(f"Tesseract OCR {version} is available")
            _tesseract_available = True
    return _tesseract_available


def _get_slots() -> threading.BoundedSemaphore:
    global _slots
    with _slots_lock:
        if _slots is None:
            _slots = threading.BoundedSemaphore(config.ocr_max_workers)
        return _slots


class TesseractEngine:
    """A single-use recognizer handed out by :func:`ocr_session`."""

    def __init__(self, language: str, psm: int, timeout: float, min_confidence: float):
        self.language = language
        self.psm = psm
        self.timeout = timeout
        self.min_confidence = min_confidence
        self.terminated = False

    def recognize(self, image_bytes: bytes) -> OCRResult:
        """Run OCR on an encoded image and return words and lines.

        Raises:
            RuntimeError: engine already terminated, Tesseract missing, or
                recognition failed / timed out.
        """
        if self.terminated:
            raise RuntimeError("OCR engine has been terminated")
        if not _check_tesseract():
            raise RuntimeError("Tesseract OCR is not available")

        import pytesseract
        from PIL import Image

        logger.info("Starting OCR recognition...")
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            try:
                data = pytesseract.image_to_data(
                    img,
                    lang=self.language,
                    output_type=pytesseract.Output.DICT,
                    config=f"--oem 1 --psm {self.psm}",
                    timeout=self.timeout,
                )
            except RuntimeError as exc:
                # pytesseract signals its own timeout with a bare RuntimeError
                raise RuntimeError(f"OCR recognition failed: {exc}") from exc
            except pytesseract.TesseractError as exc:
                raise RuntimeError(f"OCR recognition failed: {exc.message}") from exc

        words = self._words(data)
        lines = group_lines(words)
        result = OCRResult(
            text="\n".join(line.text for line in lines),
            words=words,
            lines=lines,
            width=width,
            height=height,
        )
        if not result.words:
            logger.warning(f"No words detected by OCR (text length {len(result.text)})")
        logger.info(f"OCR extracted {len(result.words)} words in {len(result.lines)} lines")
        return result

    def _words(self, data: dict) -> list[Token]:
        """Turn ``image_to_data`` word rows into Tokens."""

        def col(name: str, i: int) -> int:
            values = data.get(name)
            return values[i] if values else 0

        words: list[Token] = []
        for i in range(len(data.get("text", []))):
            try:
                conf = float(data["conf"][i])
            except (KeyError, TypeError, ValueError):
                conf = -1.0
            # Non-word rows (pages, blocks, lines) carry conf -1
            if conf < 0 or conf < self.min_confidence:
                continue

            token = normalize_token({
                "text": data["text"][i],
                "bbox": {
                    "x": col("left", i),
                    "y": col("top", i),
                    "w": col("width", i),
                    "h": col("height", i),
                },
                "confidence": conf,
                "block_index": col("block_num", i),
                "paragraph_index": col("par_num", i),
                "line_index": col("line_num", i),
                "word_index": col("word_num", i),
            })
            if token is not None:
                words.append(token)
        return words

    def terminate(self) -> None:
        self.terminated = True


@contextmanager
def ocr_session() -> Iterator[TesseractEngine]:
    """Acquire an OCR engine slot for the duration of the ``with`` block.

    The engine is terminated and the slot released on every exit path,
    including exceptions raised by the caller inside the block.
    """
    slots = _get_slots()
    slots.acquire()
    engine = TesseractEngine(
        language=config.ocr_language,
        psm=config.ocr_psm,
        timeout=config.ocr_timeout_seconds,
        min_confidence=config.ocr_min_confidence,
    )
    try:
        yield engine
    finally:
        engine.terminate()
        slots.release()
        logger.debug("OCR engine released")
