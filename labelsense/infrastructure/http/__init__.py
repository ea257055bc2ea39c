"""HTTP image acquisition."""

from .images import ImageDownloader, get_image_dimensions, read_image_file

__all__ = ["ImageDownloader", "get_image_dimensions", "read_image_file"]
