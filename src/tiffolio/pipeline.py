"""
Batch conversion and extraction over a directory.

Each input file is an independent unit of work: its errors are caught at the
file boundary and returned as a failed :class:`FileOutcome`, so one bad file
never stops the rest of the batch. Conversions run on a bounded thread pool;
extraction only starts once every conversion has finished.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import Settings
from .drawings.session import DrawingExportSession
from .errors import TiffolioError
from .logging import get_logger
from .pdf.assembler import DocumentAssembler
from .pdf.compositor import PageCompositor
from .pdf.ingestion import LayoutSource, PyMuPdfLayoutSource
from .raster.frames import FrameSource, PillowFrameSource
from .text.region import PageText, RegionTextExtractor

logger = get_logger(__name__)

RASTER_SUFFIXES = {".tif", ".tiff"}
PDF_SUFFIXES = {".pdf"}
DRAWING_SUFFIXES = {".slddrw"}


class ConversionState(str, Enum):
    PENDING = "pending"
    DECODING = "decoding"
    COMPOSING = "composing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class ExtractionState(str, Enum):
    OPENED = "opened"
    SCANNING = "scanning"
    CLOSED = "closed"


@dataclass
class FileOutcome:
    """Result of converting one input file."""
    path: Path
    state: ConversionState = ConversionState.PENDING
    output: Optional[Path] = None
    page_count: int = 0
    failed_at: Optional[ConversionState] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is ConversionState.DONE

    def advance(self, state: ConversionState) -> None:
        logger.debug(f"{self.path.name}: {self.state.value} -> {state.value}")
        self.state = state

    def fail(self, reason: str) -> None:
        self.failed_at = self.state
        self.state = ConversionState.FAILED
        self.reason = reason


@dataclass
class ExtractionOutcome:
    """Region text found in one PDF, or the reason it could not be read."""
    path: Path
    state: ExtractionState = ExtractionState.OPENED
    pages: List[PageText] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def _modified_ns(path: Path) -> Optional[int]:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


def _discover(directory: Path, suffixes: set[str]) -> List[Path]:
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Input directory does not exist or is not a directory: {directory}")
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in suffixes),
        key=lambda p: p.name,
    )


def discover_rasters(directory: Path) -> List[Path]:
    """``*.tif`` and ``*.tiff`` files directly inside ``directory``, any case."""
    return _discover(directory, RASTER_SUFFIXES)


def discover_pdfs(directory: Path) -> List[Path]:
    return _discover(directory, PDF_SUFFIXES)


def discover_drawings(directory: Path) -> List[Path]:
    return _discover(directory, DRAWING_SUFFIXES)


def convert_file(
    path: Path,
    settings: Optional[Settings] = None,
    frame_source: Optional[FrameSource] = None,
) -> FileOutcome:
    """Convert one raster container into a sibling PDF, one page per frame."""
    settings = settings or Settings()
    frame_source = frame_source or PillowFrameSource()
    compositor = PageCompositor(settings.image_format, settings.point_precision)
    outcome = FileOutcome(path=Path(path))
    target = outcome.path.with_suffix(settings.output_suffix)

    try:
        outcome.advance(ConversionState.DECODING)
        pages = []
        # closing() releases the input file even when composing fails midway
        with closing(frame_source.frames(outcome.path)) as frames:
            # Frames are lazy: pull the first one so opening the container
            # and decoding frame 0 happen in the DECODING state
            first = next(frames, None)
            outcome.advance(ConversionState.COMPOSING)
            if first is not None:
                pages.append(compositor.compose(first))
                pages.extend(compositor.compose(frame) for frame in frames)

        outcome.advance(ConversionState.WRITING)
        outcome.output = DocumentAssembler().write(pages, target)
        outcome.page_count = len(pages)
        outcome.advance(ConversionState.DONE)
    except TiffolioError as exc:
        outcome.fail(_describe(exc))
        logger.warning(f"Failed to convert {outcome.path}: {outcome.reason}")
    except Exception as exc:
        outcome.fail(_describe(exc))
        logger.error(f"Unexpected error converting {outcome.path}: {outcome.reason}")

    return outcome


def convert_batch(
    paths: Iterable[Path],
    settings: Optional[Settings] = None,
    frame_source: Optional[FrameSource] = None,
) -> List[FileOutcome]:
    """
    Convert files concurrently; results are returned in input order.

    Args:
        paths: Raster containers to convert
        settings: Worker count and geometry settings
        frame_source: Decoder to use, Pillow by default

    Returns:
        One FileOutcome per input path
    """
    settings = settings or Settings()
    path_list = list(paths)
    if not path_list:
        return []

    workers = settings.workers or os.cpu_count() or 1
    workers = min(workers, len(path_list))
    logger.info(f"Converting {len(path_list)} files with {workers} workers")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(lambda p: convert_file(p, settings, frame_source), path_list))

    failed = sum(1 for outcome in outcomes if not outcome.ok)
    logger.info(f"Conversion complete: {len(outcomes) - failed} succeeded, {failed} failed")
    return outcomes


def extract_file(
    path: Path,
    settings: Optional[Settings] = None,
    layout_source: Optional[LayoutSource] = None,
) -> ExtractionOutcome:
    """Collect the corner region words of every page of one PDF."""
    settings = settings or Settings()
    layout_source = layout_source or PyMuPdfLayoutSource()
    extractor = RegionTextExtractor(settings.region_size)
    outcome = ExtractionOutcome(path=Path(path))

    try:
        outcome.state = ExtractionState.SCANNING
        outcome.pages = extractor.extract_document(layout_source, outcome.path)
    except TiffolioError as exc:
        outcome.reason = _describe(exc)
        logger.warning(f"Failed to extract text from {outcome.path}: {outcome.reason}")
    except Exception as exc:
        outcome.reason = _describe(exc)
        logger.error(f"Unexpected error extracting text from {outcome.path}: {outcome.reason}")
    finally:
        outcome.state = ExtractionState.CLOSED

    return outcome


def extract_batch(
    paths: Iterable[Path],
    settings: Optional[Settings] = None,
    layout_source: Optional[LayoutSource] = None,
) -> List[ExtractionOutcome]:
    return [extract_file(path, settings, layout_source) for path in paths]


def export_drawings(
    session: DrawingExportSession,
    paths: Sequence[Path],
    output_suffix: str = ".pdf",
) -> List[FileOutcome]:
    """
    Export drawings one at a time through an open session.

    A drawing counts as exported only when the application reports success
    without errors and the target PDF was written by this export; a PDF left
    over from an earlier run does not count.
    """
    outcomes = []
    for path in paths:
        outcome = FileOutcome(path=Path(path))
        target = outcome.path.with_suffix(output_suffix)
        previous = _modified_ns(target)
        outcome.advance(ConversionState.WRITING)
        try:
            result = session.export(outcome.path, target)
        except Exception as exc:
            outcome.fail(_describe(exc))
        else:
            written = _modified_ns(target)
            if not result.ok:
                outcome.fail(
                    f"export failed: errors={result.error_count}, warnings={result.warning_count}"
                )
            elif written is None or written == previous:
                outcome.fail(f"export reported success but wrote no new {target.name}")
            else:
                outcome.output = target
                outcome.advance(ConversionState.DONE)

        if outcome.ok:
            logger.info(f"Exported {outcome.path} to {outcome.output}")
        else:
            logger.warning(f"Failed to export {outcome.path}: {outcome.reason}")
        outcomes.append(outcome)
    return outcomes


@dataclass
class DirectoryReport:
    conversions: List[FileOutcome]
    extractions: List[ExtractionOutcome]

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.conversions) and all(o.ok for o in self.extractions)


def run_directory(
    directory: Path,
    settings: Optional[Settings] = None,
    session: Optional[DrawingExportSession] = None,
) -> DirectoryReport:
    """
    Convert every raster (and drawing, given a session) in ``directory``,
    then extract corner text from every PDF it then holds.

    Raises:
        NotADirectoryError: If ``directory`` is missing
    """
    settings = settings or Settings()
    conversions: List[FileOutcome] = []

    if session is not None:
        drawings = discover_drawings(directory)
        with session:
            conversions.extend(export_drawings(session, drawings, settings.output_suffix))

    conversions.extend(convert_batch(discover_rasters(directory), settings))

    # All conversions are finished here; only complete PDFs are visible
    extractions = extract_batch(discover_pdfs(directory), settings)
    return DirectoryReport(conversions=conversions, extractions=extractions)
