"""Product image record submitted by callers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class ImageType(str, Enum):
    """Rendition of a stored product image."""

    NORMAL = "NORMAL"
    MINIATURE = "MINIATURE"

    @classmethod
    def from_string(cls, value: str | None) -> "ImageType":
        if not value:
            return cls.NORMAL
        try:
            return cls(value.upper().strip())
        except ValueError:
            return cls.NORMAL


@dataclass
class ProductImage:
    """An image reference from the product catalogue.

    The catalogue stores either an absolute URL or a path relative to a
    media base URL; :meth:`build_url` resolves both.
    """

    id: str
    referenced_file_url: str
    base_url: str = ""
    is_absolute_url: bool = False
    file_pixel_width: int = 0
    file_pixel_height: int = 0
    image_type: ImageType = ImageType.NORMAL
    image_hash: str = ""
    main: bool = False

    def build_url(self) -> str:
        """Return the full download URL for this image."""
        if self.is_absolute_url:
            return self.referenced_file_url
        return f"{self.base_url}{self.referenced_file_url}"

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], default_base_url: str = ""
    ) -> "ProductImage":
        """Create an image from a catalogue payload.

        Accepts both the catalogue's camelCase keys (``_id``,
        ``referencedFileURL``, ``baseUrl`` ...) and snake_case keys.
        """

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        image_id = pick("_id", "id")
        if image_id is None:
            raise ValueError("Image record is missing an '_id'")

        return cls(
            id=str(image_id),
            referenced_file_url=str(
                pick("referencedFileURL", "referenced_file_url", "url", default="")
            ),
            base_url=str(pick("baseUrl", "base_url", default=default_base_url)),
            is_absolute_url=bool(pick("isAbsoluteUrl", "is_absolute_url", default=False)),
            file_pixel_width=int(pick("filePixelWidth", "file_pixel_width", default=0)),
            file_pixel_height=int(
                pick("filePixelHeight", "file_pixel_height", default=0)
            ),
            image_type=ImageType.from_string(pick("imageType", "image_type")),
            image_hash=str(pick("imageHash", "image_hash", default="")),
            main=bool(pick("main", default=False)),
        )


__all__ = ["ImageType", "ProductImage"]
