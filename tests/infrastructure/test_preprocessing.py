"""Tests for image preprocessing."""

import io

import pytest
from PIL import Image

from labelsense.domain.errors import ImageDecodeError
from labelsense.infrastructure.ai.preprocessing import (
    PreprocessingConfig,
    preprocess_for_ocr,
    preprocess_variants,
    resize_for_ocr,
)


def _png(width: int, height: int, color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


@pytest.mark.parametrize(
    "size, expected",
    [
        ((100, 50), (1500, 750)),
        ((300, 100), (1500, 500)),
        ((3000, 2000), (2500, 1667)),
        ((1600, 1600), (1600, 1600)),
    ],
)
def test_resize_policy(size: tuple[int, int], expected: tuple[int, int]) -> None:
    image = Image.new("RGB", size)
    assert resize_for_ocr(image, PreprocessingConfig()).size == expected


def test_narrow_side_triggers_enlargement() -> None:
    # One side under the minimum is enough to upscale the whole image.
    image = Image.new("RGB", (3000, 1000))
    assert resize_for_ocr(image, PreprocessingConfig()).size == (6000, 2000)


def test_preprocess_produces_binary_greyscale_png() -> None:
    source = Image.new("RGB", (120, 60), "white")
    source.paste((30, 30, 30), (20, 20, 60, 40))
    buffer = io.BytesIO()
    source.save(buffer, format="PNG")

    result = _open(preprocess_for_ocr(buffer.getvalue()))

    assert result.format == "PNG"
    assert result.mode == "L"
    assert result.size == (1500, 750)
    assert {value for _, value in result.getcolors()} <= {0, 255}


def test_binarisation_can_be_disabled() -> None:
    config = PreprocessingConfig(binarize=False, min_size=10)
    result = _open(preprocess_for_ocr(_png(40, 40), config))

    assert result.mode == "L"
    assert result.size == (40, 40)


def test_invalid_bytes_raise_decode_error() -> None:
    with pytest.raises(ImageDecodeError):
        preprocess_for_ocr(b"definitely not an image")


def test_variants() -> None:
    variants = preprocess_variants(_png(3000, 1500, "gray"))

    assert len(variants) == 3
    sizes = {_open(v).size for v in variants}
    assert sizes == {(2500, 1250)}
    assert _open(variants[0]).mode == "RGB"
    assert _open(variants[1]).mode == "L"
