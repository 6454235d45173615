import asyncio
import logging
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import CodecError

logger = logging.getLogger(__name__)

WEBP_FORMAT = "WEBP"


class PillowCodec:
    """Image resizing and WebP encoding with Pillow."""

    def __init__(self, quality: int = 85):
        self.quality = quality

    async def thumbnail(self, source: str, destination: str, size: int) -> Tuple[int, int]:
        """
        Crop-to-fill the source onto an exact ``size`` x ``size`` canvas.

        Returns:
            The (width, height) written
        """
        return await asyncio.to_thread(self._run, self._thumbnail, source, destination, size)

    async def fit_within(self, source: str, destination: str, max_edge: int) -> Tuple[int, int]:
        """
        Shrink the source so its longest edge is at most ``max_edge``, keeping
        the aspect ratio. Smaller images are re-encoded at their own size.

        Returns:
            The (width, height) written
        """
        return await asyncio.to_thread(self._run, self._fit_within, source, destination, max_edge)

    def _run(self, operation, source: str, destination: str, bound: int) -> Tuple[int, int]:
        try:
            with Image.open(source) as img:
                # Apply EXIF orientation before measuring
                img = ImageOps.exif_transpose(img)
                result = operation(img, bound)
                result = self._normalize_mode(result)
                result.save(destination, format=WEBP_FORMAT, quality=self.quality)
                return result.size
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.error(f"Error converting {source}: {str(e)}")
            raise CodecError(f"Failed to convert {source}: {str(e)}") from e

    @staticmethod
    def _thumbnail(img: Image.Image, size: int) -> Image.Image:
        return ImageOps.fit(img, (size, size), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))

    @staticmethod
    def _fit_within(img: Image.Image, max_edge: int) -> Image.Image:
        img = img.copy()
        img.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
        return img

    @staticmethod
    def _normalize_mode(img: Image.Image) -> Image.Image:
        if img.mode in ("RGB", "RGBA"):
            return img
        if img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info):
            return img.convert("RGBA")
        return img.convert("RGB")
