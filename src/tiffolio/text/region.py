"""
Region based word selection.

Bounding boxes and regions share one coordinate space: PDF points with the
origin at the bottom-left corner of the page and y increasing upward.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List

from ..logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from ..pdf.ingestion import LayoutSource, PageLayout

logger = get_logger(__name__)

DEFAULT_REGION_SIZE = 300.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in PDF points, bottom-left origin."""
    left: float
    bottom: float
    right: float
    top: float

    def width(self) -> float:
        return self.right - self.left

    def height(self) -> float:
        return self.top - self.bottom


@dataclass(frozen=True)
class Word:
    text: str
    page_index: int
    bbox: BoundingBox


@dataclass(frozen=True)
class Region:
    """Selection rectangle; may extend past the page edges."""
    left: float
    bottom: float
    right: float
    top: float

    def contains(self, bbox: BoundingBox) -> bool:
        """True if ``bbox`` lies fully inside, edges included."""
        return (
            bbox.left >= self.left
            and bbox.bottom >= self.bottom
            and bbox.right <= self.right
            and bbox.top <= self.top
        )


@dataclass(frozen=True)
class PageText:
    page_index: int
    region: Region
    words: List[Word]

    @property
    def text(self) -> str:
        return " ".join(word.text for word in self.words)


def corner_region(page_width: float, size: float = DEFAULT_REGION_SIZE) -> Region:
    """
    Bottom-right square of ``size`` points, where drawing title blocks sit.

    Pages narrower than ``size`` get a negative left edge, which simply
    covers the full width.
    """
    return Region(left=page_width - size, bottom=0.0, right=page_width, top=size)


def words_in_region(words: Iterable[Word], region: Region) -> List[Word]:
    """Words whose box is fully contained in ``region``, in input order."""
    return [word for word in words if region.contains(word.bbox)]


class RegionTextExtractor:
    def __init__(self, region_size: float = DEFAULT_REGION_SIZE) -> None:
        self._region_size = region_size

    def extract(self, layout: PageLayout) -> PageText:
        region = corner_region(layout.width, self._region_size)
        words = words_in_region(layout.words, region)
        logger.debug(
            f"Page {layout.index}: {len(words)}/{len(layout.words)} words in {region}"
        )
        return PageText(page_index=layout.index, region=region, words=words)

    def extract_document(self, source: LayoutSource, path: Path) -> List[PageText]:
        """Apply the corner region to every page of the document at ``path``."""
        return [self.extract(layout) for layout in source.pages(path)]
