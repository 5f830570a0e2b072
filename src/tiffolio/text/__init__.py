"""
Region text extraction.

Selects the words of a page whose bounding boxes fall inside a rectangle,
by default the bottom-right title block corner of a drawing sheet.
"""

from .region import (
    BoundingBox,
    PageText,
    Region,
    RegionTextExtractor,
    Word,
    corner_region,
    words_in_region,
)

__all__ = [
    "BoundingBox",
    "PageText",
    "Region",
    "RegionTextExtractor",
    "Word",
    "corner_region",
    "words_in_region",
]
