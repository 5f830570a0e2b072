"""
Atomic PDF assembly from composed pages.

Pages are written in the order given into a temporary file beside the
target, the temporary file is re-opened and checked, and only then moved over
the target with ``os.replace``. On any failure the temporary file is removed
and the target is left as it was.
"""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Iterable

import fitz  # type: ignore[import]

from ..errors import IoError, PartialWriteError
from ..logging import get_logger
from .compositor import Page

logger = get_logger(__name__)

# MuPDF is not thread-safe; conversions on a pool take turns writing
_MUPDF_LOCK = threading.Lock()


def _empty_pdf_bytes() -> bytes:
    """Build a minimal valid PDF with an empty page tree."""
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [] /Count 0 >>",
    ]
    out = bytearray(b"%PDF-1.7\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


class DocumentAssembler:
    def write(self, pages: Iterable[Page], output_path: Path) -> Path:
        """
        Write pages, in order, as a single PDF at ``output_path``.

        Args:
            pages: Composed pages; may be empty
            output_path: Final document location

        Returns:
            The output path

        Raises:
            IoError: If the document cannot be written
            PartialWriteError: If the written file lost or gained pages
        """
        output_path = Path(output_path)
        page_list = list(pages)

        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{output_path.stem}.", suffix=".tmp", dir=output_path.parent
            )
        except OSError as exc:
            raise IoError(f"Cannot create temporary file for {output_path}: {exc}") from exc
        os.close(fd)
        tmp_path = Path(tmp_name)

        try:
            with _MUPDF_LOCK:
                self._write_to(page_list, tmp_path)
                self._verify(tmp_path, len(page_list))
            os.replace(tmp_path, output_path)
        except (OSError, RuntimeError, ValueError) as exc:
            tmp_path.unlink(missing_ok=True)
            raise IoError(f"Failed to write {output_path}: {exc}") from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.info(f"Wrote {len(page_list)} pages to {output_path}")
        return output_path

    def _write_to(self, pages: list[Page], path: Path) -> None:
        if not pages:
            # PyMuPDF refuses to save a document with zero pages
            path.write_bytes(_empty_pdf_bytes())
            return

        doc = fitz.open()
        try:
            for page in pages:
                pdf_page = doc.new_page(width=page.width, height=page.height)
                pdf_page.insert_image(
                    fitz.Rect(0, 0, page.width, page.height),
                    stream=page.image_bytes,
                    keep_proportion=False,
                )
            doc.save(str(path), garbage=3, deflate=True)
        except Exception as exc:
            raise IoError(f"PyMuPDF failed to write {path}: {exc}") from exc
        finally:
            doc.close()

    def _verify(self, path: Path, expected_pages: int) -> None:
        try:
            doc = fitz.open(str(path))
        except Exception as exc:
            raise PartialWriteError(f"Written document cannot be re-opened: {path}") from exc
        try:
            actual = doc.page_count
        finally:
            doc.close()
        if actual != expected_pages:
            raise PartialWriteError(
                f"Written document has {actual} pages, expected {expected_pages}: {path}"
            )
