"""
Frame decoding for multi-frame raster containers.

Frames are yielded lazily in the container's native order. Density is read
from the raw TIFF resolution tags because Pillow reports 1 dpi for files that
carry no resolution at all, which would silently produce pages 72x too large.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generator, Optional, Protocol

from PIL import Image, UnidentifiedImageError

from ..errors import DecodeError, MissingMetadataError
from ..logging import get_logger

logger = get_logger(__name__)

# What Pillow raises for damaged or truncated containers, besides OSError
_DECODE_FAILURES = (
    OSError,
    EOFError,
    ValueError,
    TypeError,
    SyntaxError,
    IndexError,
    struct.error,
    Image.DecompressionBombError,
)

# TIFF tag numbers
X_RESOLUTION = 282
Y_RESOLUTION = 283
RESOLUTION_UNIT = 296

UNIT_NONE = 1
UNIT_INCH = 2
UNIT_CENTIMETER = 3
CM_PER_INCH = 2.54


@dataclass(frozen=True)
class Frame:
    """One decoded image of a raster container."""
    index: int
    width: int
    height: int
    density_x: float
    density_y: float
    image: Image.Image


class FrameSource(Protocol):
    def frames(self, path: Path) -> Generator[Frame, None, None]:
        ...


def read_density(x: Any, y: Any, unit: Optional[int] = UNIT_INCH) -> tuple[float, float]:
    """
    Validate raw resolution values and convert them to dots per inch.

    Args:
        x: Horizontal resolution as stored in the file (or None)
        y: Vertical resolution as stored in the file (or None)
        unit: TIFF ResolutionUnit; None means inch (the TIFF default)

    Returns:
        (density_x, density_y) in dots per inch

    Raises:
        MissingMetadataError: If either axis is absent, non-positive or NaN,
            or the unit carries no absolute measure
    """
    if x is None or y is None:
        raise MissingMetadataError(
            f"resolution must be defined for both axes (x={x}, y={y})"
        )

    if unit is None:
        unit = UNIT_INCH
    if unit == UNIT_NONE:
        raise MissingMetadataError("resolution unit has no absolute measure")
    if unit not in (UNIT_INCH, UNIT_CENTIMETER):
        raise MissingMetadataError(f"unknown resolution unit: {unit}")

    try:
        density_x, density_y = float(x), float(y)
    except (TypeError, ValueError, ZeroDivisionError) as exc:
        raise MissingMetadataError(f"unreadable resolution: x={x}, y={y}") from exc

    # NaN fails every comparison, so this also rejects x/0 rationals
    if not (density_x > 0 and density_y > 0) or math.isinf(density_x) or math.isinf(density_y):
        raise MissingMetadataError(
            f"resolution must be positive (x={density_x}, y={density_y})"
        )

    if unit == UNIT_CENTIMETER:
        density_x *= CM_PER_INCH
        density_y *= CM_PER_INCH
    return density_x, density_y


def _frame_density(image: Image.Image) -> tuple[float, float]:
    tags = getattr(image, "tag_v2", None)
    if tags is not None:
        return read_density(
            tags.get(X_RESOLUTION),
            tags.get(Y_RESOLUTION),
            tags.get(RESOLUTION_UNIT),
        )

    dpi = image.info.get("dpi")
    if dpi is None:
        raise MissingMetadataError("image carries no resolution metadata")
    return read_density(dpi[0], dpi[1])


class PillowFrameSource:
    """Decode TIFF (or any Pillow-readable) containers frame by frame."""

    def frames(self, path: Path) -> Generator[Frame, None, None]:
        path = Path(path)
        try:
            container = Image.open(path)
        except Image.DecompressionBombError as exc:
            raise DecodeError(f"Raster exceeds the Pillow pixel limit: {path}: {exc}") from exc
        except (OSError, UnidentifiedImageError) as exc:
            raise DecodeError(f"Failed to open raster: {path}") from exc

        with container:
            # n_frames scans every IFD, so a truncated file can fail here
            try:
                frame_count = getattr(container, "n_frames", 1)
            except _DECODE_FAILURES as exc:
                raise DecodeError(f"Failed to count frames of {path}: {exc}") from exc
            logger.debug(f"{path.name}: {frame_count} frames")

            for index in range(frame_count):
                try:
                    container.seek(index)
                    container.load()
                except _DECODE_FAILURES as exc:
                    raise DecodeError(f"Failed to decode frame {index} of {path}: {exc}") from exc

                try:
                    density_x, density_y = _frame_density(container)
                except MissingMetadataError as exc:
                    raise MissingMetadataError(f"{path}, frame {index}: {exc}") from exc

                width, height = container.size
                if width <= 0 or height <= 0:
                    raise DecodeError(f"Frame {index} of {path} has no pixels ({width}x{height})")

                yield Frame(
                    index=index,
                    width=width,
                    height=height,
                    density_x=density_x,
                    density_y=density_y,
                    image=container.copy(),
                )
