"""Tests for the OCR engine — unit-level (no Tesseract required)."""

from __future__ import annotations

import io
import sys
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

import core.ocr.engine as mod
from core.config import config
from core.ocr.engine import TesseractEngine, _check_tesseract, _get_slots, ocr_session


def _png(size=(200, 100)) -> bytes:
    buf = io.BytesIO()
    Image.new("L", size, 255).save(buf, "PNG")
    return buf.getvalue()


MOCK_DATA = {
    "level": [1, 5, 5, 4, 5],
    "text": ["", "John", "Smith", "", "john@x.com"],
    "conf": [-1, 90, 80, -1, 95],
    "left": [0, 10, 60, 0, 10],
    "top": [0, 10, 10, 0, 40],
    "width": [200, 40, 50, 0, 90],
    "height": [100, 12, 12, 0, 12],
    "block_num": [1, 1, 1, 1, 1],
    "par_num": [1, 1, 1, 1, 1],
    "line_num": [1, 1, 1, 2, 2],
    "word_num": [0, 1, 2, 0, 1],
}


def _mock_pytesseract(data=None, side_effect=None) -> MagicMock:
    mock = MagicMock()
    mock.Output.DICT = "dict"
    mock.TesseractError = type("TesseractError", (Exception,), {"message": "boom"})
    if side_effect is not None:
        mock.image_to_data.side_effect = side_effect
    else:
        mock.image_to_data.return_value = data if data is not None else MOCK_DATA
    return mock


@pytest.fixture
def tesseract_available():
    old_val = mod._tesseract_available
    mod._tesseract_available = True
    yield
    mod._tesseract_available = old_val


def _engine(**kwargs) -> TesseractEngine:
    params = {"language": "eng", "psm": 3, "timeout": 0, "min_confidence": 0}
    params.update(kwargs)
    return TesseractEngine(**params)


class TestCheckTesseract:
    def test_returns_bool(self):
        """_check_tesseract should return True or False."""
        old_val = mod._tesseract_available
        mod._tesseract_available = None
        result = _check_tesseract()
        assert isinstance(result, bool)
        mod._tesseract_available = old_val

    def test_caches_result(self):
        """Once checked, the result is cached."""
        mod._tesseract_available = True
        assert _check_tesseract() is True
        mod._tesseract_available = False
        assert _check_tesseract() is False
        mod._tesseract_available = None

    def test_configured_cmd_is_used(self, monkeypatch):
        mock = _mock_pytesseract()
        mock.get_tesseract_version.return_value = "5.3.0"
        monkeypatch.setattr(config, "tesseract_cmd", "/opt/tesseract/bin/tesseract")
        monkeypatch.setattr(mod, "_tesseract_available", None)
        with patch.dict(sys.modules, {"pytesseract": mock}):
            assert _check_tesseract() is True
        assert mock.pytesseract.tesseract_cmd == "/opt/tesseract/bin/tesseract"

    def test_missing_binary_is_cached_as_unavailable(self, monkeypatch):
        mock = _mock_pytesseract()
        mock.get_tesseract_version.side_effect = OSError("tesseract is not installed")
        monkeypatch.setattr(config, "tesseract_cmd", "")
        monkeypatch.setattr(mod, "_tesseract_available", None)
        with patch.dict(sys.modules, {"pytesseract": mock}):
            assert _check_tesseract() is False
            assert _check_tesseract() is False
        mock.get_tesseract_version.assert_called_once()


class TestRecognize:
    def test_unavailable_raises(self):
        old_val = mod._tesseract_available
        mod._tesseract_available = False
        try:
            with pytest.raises(RuntimeError, match="not available"):
                _engine().recognize(_png())
        finally:
            mod._tesseract_available = old_val

    def test_words_and_lines(self, tesseract_available):
        mock = _mock_pytesseract()
        with patch.dict(sys.modules, {"pytesseract": mock}):
            result = _engine().recognize(_png())

        assert [w.text for w in result.words] == ["John", "Smith", "john@x.com"]
        assert [ln.text for ln in result.lines] == ["John Smith", "john@x.com"]
        assert result.text == "John Smith\njohn@x.com"
        assert (result.width, result.height) == (200, 100)

        john = result.words[0]
        assert (john.bbox.x0, john.bbox.y0, john.bbox.x1, john.bbox.y1) == (10, 10, 50, 22)
        assert john.confidence == 90
        assert john.paragraph_index == 1

        first = result.lines[0]
        assert (first.bbox.x0, first.bbox.x1) == (10, 110)
        assert first.confidence == pytest.approx(85)

    def test_passes_language_psm_and_timeout(self, tesseract_available):
        mock = _mock_pytesseract()
        with patch.dict(sys.modules, {"pytesseract": mock}):
            _engine(language="deu", psm=6, timeout=12).recognize(_png())
        kwargs = mock.image_to_data.call_args.kwargs
        assert kwargs["lang"] == "deu"
        assert kwargs["config"] == "--oem 1 --psm 6"
        assert kwargs["timeout"] == 12
        assert kwargs["output_type"] == "dict"

    def test_min_confidence_filters_words(self, tesseract_available):
        with patch.dict(sys.modules, {"pytesseract": _mock_pytesseract()}):
            result = _engine(min_confidence=85).recognize(_png())
        assert [w.text for w in result.words] == ["John", "john@x.com"]

    def test_blank_and_malformed_rows_skipped(self, tesseract_available):
        data = dict(MOCK_DATA, text=["", " ", "Smith", "", "x"], conf=[-1, 90, "bad", -1, 95])
        with patch.dict(sys.modules, {"pytesseract": _mock_pytesseract(data)}):
            result = _engine().recognize(_png())
        assert [w.text for w in result.words] == ["x"]

    def test_no_words(self, tesseract_available):
        data = {key: [] for key in MOCK_DATA}
        with patch.dict(sys.modules, {"pytesseract": _mock_pytesseract(data)}):
            result = _engine().recognize(_png())
        assert result.words == []
        assert result.lines == []
        assert result.text == ""

    def test_timeout_is_runtime_error(self, tesseract_available):
        mock = _mock_pytesseract(side_effect=RuntimeError("Tesseract process timeout"))
        with patch.dict(sys.modules, {"pytesseract": mock}):
            with pytest.raises(RuntimeError, match="OCR recognition failed"):
                _engine(timeout=1).recognize(_png())

    def test_tesseract_error_is_runtime_error(self, tesseract_available):
        mock = _mock_pytesseract()
        mock.image_to_data.side_effect = mock.TesseractError()
        with patch.dict(sys.modules, {"pytesseract": mock}):
            with pytest.raises(RuntimeError, match="boom"):
                _engine().recognize(_png())

    def test_terminated_engine_raises(self):
        engine = _engine()
        engine.terminate()
        with pytest.raises(RuntimeError, match="terminated"):
            engine.recognize(_png())


class TestOcrSession:
    def _free_slots(self) -> int:
        slots = _get_slots()
        taken = 0
        while slots.acquire(blocking=False):
            taken += 1
        for _ in range(taken):
            slots.release()
        return taken

    def test_yields_configured_engine(self):
        from core.config import config
        with ocr_session() as engine:
            assert isinstance(engine, TesseractEngine)
            assert engine.language == config.ocr_language
            assert not engine.terminated
        assert engine.terminated

    def test_holds_a_slot(self):
        before = self._free_slots()
        with ocr_session():
            assert self._free_slots() == before - 1
        assert self._free_slots() == before

    def test_releases_on_exception(self):
        before = self._free_slots()
        with pytest.raises(ValueError):
            with ocr_session() as engine:
                raise ValueError("classifier blew up")
        assert engine.terminated
        assert self._free_slots() == before

    def test_releases_when_recognition_fails(self):
        before = self._free_slots()
        old_val = mod._tesseract_available
        mod._tesseract_available = False
        try:
            with pytest.raises(RuntimeError):
                with ocr_session() as engine:
                    engine.recognize(_png())
        finally:
            mod._tesseract_available = old_val
        assert self._free_slots() == before
