from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Protocol

import fitz  # type: ignore[import]

from ..errors import EncryptedPdfError, LayoutOpenError
from ..logging import get_logger
from ..text.region import BoundingBox, Word

logger = get_logger(__name__)


@dataclass(frozen=True)
class PageLayout:
    """Page size in points and its words in document order."""
    index: int
    width: float
    height: float
    words: list[Word] = field(default_factory=list)


class LayoutSource(Protocol):
    def pages(self, path: Path) -> Iterator[PageLayout]:
        ...


class PdfPage:
    def __init__(self, page: fitz.Page, index: int) -> None:
        self._page = page
        self._index = index

    @property
    def index(self) -> int:
        return self._index

    @property
    def width(self) -> float:
        return float(self._page.rect.width)

    @property
    def height(self) -> float:
        return float(self._page.rect.height)

    def words(self) -> list[Word]:
        """
        Words on the page with bottom-left origin bounding boxes.

        PyMuPDF reports y growing downward from the top edge; boxes are
        flipped against the page height. Order is the content stream order.
        """
        rect = self._page.rect
        words = []
        for x0, y0, x1, y1, text, *_ in self._page.get_text("words", sort=False):
            words.append(Word(
                text=text,
                page_index=self._index,
                bbox=BoundingBox(
                    left=x0 - rect.x0,
                    bottom=rect.y1 - y1,
                    right=x1 - rect.x0,
                    top=rect.y1 - y0,
                ),
            ))
        return words

    def layout(self) -> PageLayout:
        return PageLayout(
            index=self._index,
            width=self.width,
            height=self.height,
            words=self.words(),
        )

    def as_pymupdf_page(self) -> fitz.Page:
        """Return the underlying PyMuPDF page object."""
        return self._page


class PdfDocument:
    def __init__(self, source: Path | str) -> None:
        self._path = Path(source)
        self._doc = self._open_document(self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def pages(self) -> Iterator[PdfPage]:
        """Iterate over all pages in the document."""
        for i in range(self.page_count):
            yield PdfPage(self._doc.load_page(i), i)

    def close(self) -> None:
        """Close the PDF document and release file handles."""
        if getattr(self, '_doc', None) is not None:
            self._doc.close()
            self._doc = None

    def __enter__(self) -> PdfDocument:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _open_document(self, path: Path) -> fitz.Document:
        if not path.exists():
            raise LayoutOpenError(f"PDF file does not exist: {path}")

        try:
            doc = fitz.open(path, filetype="pdf")
        except Exception as exc:
            raise LayoutOpenError(f"Failed to open PDF: {path}") from exc

        if doc.needs_pass:
            doc.close()
            raise EncryptedPdfError(f"PDF is encrypted: {path}")

        return doc


class PyMuPdfLayoutSource:
    """Layout source reading word boxes with PyMuPDF."""

    def pages(self, path: Path) -> Iterator[PageLayout]:
        with PdfDocument(path) as doc:
            logger.debug(f"Scanning {doc.page_count} pages of {doc.path}")
            for page in doc.pages():
                yield page.layout()
