from __future__ import annotations

import io
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from PIL import Image

from ..errors import EncodeError
from ..logging import get_logger
from ..raster.frames import Frame

logger = get_logger(__name__)

POINTS_PER_INCH = 72
DEFAULT_PRECISION = Decimal("0.01")

# Modes PNG cannot store; converted to RGB before encoding
_CONVERT_TO_RGB = {"CMYK", "YCbCr", "LAB", "HSV"}


@dataclass(frozen=True)
class Page:
    """One document page, sized in points, filled by one embedded image."""
    index: int
    width: float
    height: float
    image_bytes: bytes
    image_format: str
    pixel_width: int
    pixel_height: int


def points_from_pixels(
    pixels: int,
    density: float,
    precision: Decimal = DEFAULT_PRECISION,
) -> float:
    """Convert a pixel length to points, rounded half-up to ``precision``."""
    exact = Decimal(pixels) * POINTS_PER_INCH / Decimal(repr(float(density)))
    return float(exact.quantize(precision, rounding=ROUND_HALF_UP))


def page_size(
    pixel_width: int,
    pixel_height: int,
    density_x: float,
    density_y: float,
    precision: Decimal = DEFAULT_PRECISION,
) -> tuple[float, float]:
    """Physical page size in points for a frame of the given pixels and dpi."""
    return (
        points_from_pixels(pixel_width, density_x, precision),
        points_from_pixels(pixel_height, density_y, precision),
    )


class PageCompositor:
    """Turn decoded frames into pages with a losslessly embedded image."""

    def __init__(self, image_format: str = "png", precision: Decimal = DEFAULT_PRECISION) -> None:
        self._format = image_format.lower()
        self._precision = precision

    def compose(self, frame: Frame) -> Page:
        width, height = page_size(
            frame.width, frame.height, frame.density_x, frame.density_y, self._precision
        )
        image_bytes = self._encode(frame)

        logger.debug(
            f"Frame {frame.index}: {frame.width}x{frame.height} px at "
            f"{frame.density_x:g}x{frame.density_y:g} dpi -> {width}x{height} pt"
        )
        return Page(
            index=frame.index,
            width=width,
            height=height,
            image_bytes=image_bytes,
            image_format=self._format,
            pixel_width=frame.width,
            pixel_height=frame.height,
        )

    def _encode(self, frame: Frame) -> bytes:
        image: Image.Image = frame.image
        try:
            if image.mode in _CONVERT_TO_RGB:
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format=self._format.upper())
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(
                f"Cannot encode frame {frame.index} (mode {frame.image.mode}) as {self._format}"
            ) from exc
        return buffer.getvalue()
