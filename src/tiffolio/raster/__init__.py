"""
Raster frame decoding.

Turns multi-frame TIFF containers into ordered frames carrying pixel size and
density, the inputs page geometry is derived from.
"""

from .frames import Frame, FrameSource, PillowFrameSource, read_density

__all__ = [
    "Frame",
    "FrameSource",
    "PillowFrameSource",
    "read_density",
]
