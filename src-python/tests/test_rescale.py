"""Tests for core.detection.rescale — mapping OCR boxes back to the upload."""

from __future__ import annotations

import pytest

from models.schemas import Detection, ImageSize, PIIType, Rect
from core.detection.rescale import rescale, scale_detections, scale_factors


def _det(left=400.0, top=200.0, width=120.0, height=40.0) -> Detection:
    return Detection(
        type=PIIType.EMAIL,
        text="a@b.io",
        confidence=90,
        bbox=Rect(left=left, top=top, width=width, height=height),
    )


class TestScaleFactors:
    def test_downscale(self):
        assert scale_factors(ImageSize(width=1000, height=500), ImageSize(width=2000, height=1000)) == (
            pytest.approx(0.5), pytest.approx(0.5),
        )

    def test_independent_axes(self):
        sx, sy = scale_factors(ImageSize(width=1000, height=300), ImageSize(width=2000, height=1000))
        assert sx == pytest.approx(0.5)
        assert sy == pytest.approx(0.3)

    @pytest.mark.parametrize("original, processed", [
        (ImageSize(), ImageSize(width=2000, height=1000)),
        (ImageSize(width=1000, height=500), ImageSize()),
        (ImageSize(width=0, height=0), ImageSize(width=2000, height=1000)),
        (ImageSize(width=1000, height=500), ImageSize(width=-1, height=0)),
    ])
    def test_missing_sizes_scale_by_one(self, original, processed):
        assert scale_factors(original, processed) == (1.0, 1.0)

    def test_one_missing_axis(self):
        sx, sy = scale_factors(ImageSize(width=1000), ImageSize(width=2000, height=1000))
        assert sx == pytest.approx(0.5)
        assert sy == 1.0


class TestRescale:
    def test_multiplies_every_field(self):
        [out] = rescale([_det()], ImageSize(width=500, height=250), ImageSize(width=2000, height=1000))
        assert out.bbox.left == pytest.approx(100)
        assert out.bbox.top == pytest.approx(50)
        assert out.bbox.width == pytest.approx(30)
        assert out.bbox.height == pytest.approx(10)

    def test_keeps_identity_and_inputs(self):
        det = _det()
        [out] = rescale([det], ImageSize(width=500, height=250), ImageSize(width=2000, height=1000))
        assert out.id == det.id
        assert out.text == det.text
        assert out.type == det.type
        assert det.bbox.left == 400

    def test_same_size_is_identity(self):
        det = _det()
        [out] = rescale([det], ImageSize(width=2000, height=1000), ImageSize(width=2000, height=1000))
        assert out.bbox == det.bbox

    def test_inverse_restores(self):
        det = _det()
        down = scale_detections([det], 0.37, 1.9)
        [back] = scale_detections(down, 1 / 0.37, 1 / 1.9)
        assert back.bbox.left == pytest.approx(det.bbox.left)
        assert back.bbox.top == pytest.approx(det.bbox.top)
        assert back.bbox.width == pytest.approx(det.bbox.width)
        assert back.bbox.height == pytest.approx(det.bbox.height)

    def test_empty(self):
        assert rescale([], ImageSize(width=1, height=1), ImageSize(width=2, height=2)) == []
