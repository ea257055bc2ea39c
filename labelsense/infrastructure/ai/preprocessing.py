"""Image normalisation before OCR.

Product photos arrive in every size and lighting. Before recognition they
are resized into a range Tesseract reads well, converted to greyscale,
contrast-stretched, sharpened and binarised.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from labelsense.domain.errors import ImageDecodeError


@dataclass(frozen=True)
class PreprocessingConfig:
    """Resize and binarisation policy.

    Images smaller than ``min_size`` on either side are enlarged by
    ``upscale_factor`` (and to at least ``min_size``); larger images are
    shrunk to fit in ``max_size`` x ``max_size``.
    """

    min_size: int = 1500
    max_size: int = 2500
    upscale_factor: int = 2
    sharpen_radius: float = 1.5
    threshold: int = 128
    binarize: bool = True

    @classmethod
    def for_labels(cls) -> "PreprocessingConfig":
        return cls()


def _open(image_bytes: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc
    return ImageOps.exif_transpose(image).convert("RGB")


def _to_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _fit_inside(image: Image.Image, box_width: int, box_height: int) -> Image.Image:
    """Scale ``image`` to fit the box, keeping its aspect ratio."""
    scale = min(box_width / image.width, box_height / image.height)
    size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
    if size == image.size:
        return image
    return image.resize(size, Image.LANCZOS)


def resize_for_ocr(image: Image.Image, config: PreprocessingConfig) -> Image.Image:
    """Apply the resize policy of ``config`` to ``image``."""
    width, height = image.size
    if width < config.min_size or height < config.min_size:
        return _fit_inside(
            image,
            max(width * config.upscale_factor, config.min_size),
            max(height * config.upscale_factor, config.min_size),
        )
    if width > config.max_size or height > config.max_size:
        return _fit_inside(image, config.max_size, config.max_size)
    return image


def _binarize(image: Image.Image, threshold: int) -> Image.Image:
    return image.point(lambda p: 255 if p >= threshold else 0)


def preprocess_for_ocr(
    image_bytes: bytes, config: PreprocessingConfig | None = None
) -> bytes:
    """Return a PNG buffer prepared for OCR.

    Raises:
        ImageDecodeError: If the input cannot be decoded.
    """
    config = config or PreprocessingConfig.for_labels()
    image = resize_for_ocr(_open(image_bytes), config)
    grey = ImageOps.autocontrast(image.convert("L"))
    grey = grey.filter(ImageFilter.UnsharpMask(radius=config.sharpen_radius, percent=150))
    if config.binarize:
        grey = _binarize(grey, config.threshold)
    return _to_png(grey)


def preprocess_variants(
    image_bytes: bytes, max_size: int = 2500, threshold: int = 128
) -> list[bytes]:
    """Return several differently-processed versions of one image.

    The variants are an enhanced colour image, a binarised greyscale image
    and a high-contrast greyscale image. Callers OCR all of them and keep
    the best result.
    """
    base = _fit_inside(_open(image_bytes), max_size, max_size)

    enhanced = ImageOps.autocontrast(base).filter(ImageFilter.SHARPEN)

    grey = ImageOps.autocontrast(base.convert("L"))
    binarized = _binarize(grey, threshold)

    high_contrast = ImageEnhance.Contrast(base.convert("L")).enhance(1.5)

    return [_to_png(enhanced), _to_png(binarized), _to_png(high_contrast)]


__all__ = [
    "PreprocessingConfig",
    "preprocess_for_ocr",
    "preprocess_variants",
    "resize_for_ocr",
]
