"""OCR output models consumed by the analysis layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned word box in pixel coordinates."""

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

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x0 + self.x1) / 2, (self.y0 + self.y1) / 2

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BoundingBox":
        return cls(
            x0=float(data.get("x0", 0)),
            y0=float(data.get("y0", 0)),
            x1=float(data.get("x1", 0)),
            y1=float(data.get("y1", 0)),
        )


@dataclass(frozen=True)
class OCRWord:
    """A single recognised word with its confidence (0-100) and box."""

    text: str
    confidence: float
    bbox: BoundingBox

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OCRWord":
        return cls(
            text=str(data.get("text", "")),
            confidence=float(data.get("confidence", 0.0)),
            bbox=BoundingBox.from_dict(data.get("bbox") or {}),
        )


@dataclass(frozen=True)
class OCRResult:
    """Full OCR output for one image.

    ``words`` may be empty even when ``text`` is not: some engine runs only
    return unstructured text, and the analyzers fall back to it.
    """

    text: str
    confidence: float
    words: tuple[OCRWord, ...] = field(default_factory=tuple)

    @classmethod
    def create(
        cls, text: str, confidence: float, words: Iterable[OCRWord] = ()
    ) -> "OCRResult":
        """Build a result from any iterable of words."""
        return cls(text=text, confidence=confidence, words=tuple(words))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OCRResult":
        return cls.create(
            text=str(data.get("text", "")),
            confidence=float(data.get("confidence", 0.0)),
            words=[OCRWord.from_dict(w) for w in data.get("words") or []],
        )

    @property
    def is_empty(self) -> bool:
        return not self.words and not self.text.strip()


__all__ = ["BoundingBox", "OCRResult", "OCRWord"]
