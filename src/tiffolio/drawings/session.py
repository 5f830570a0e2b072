"""
Exclusive session around an external drawing export application.

The application is one process-wide instance: it is opened once, asked to
export drawings one at a time, and closed exactly once, whatever happens to
the individual exports.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..errors import SessionStateError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExportResult:
    success: bool
    error_count: int = 0
    warning_count: int = 0

    @property
    def ok(self) -> bool:
        return self.success and self.error_count == 0


class DrawingExporter(Protocol):
    """Binding to a CAD application able to save drawings as PDF."""

    def open(self) -> None:
        ...

    def export(self, source: Path, target: Path) -> ExportResult:
        ...

    def close(self) -> None:
        ...


class DrawingExportSession:
    def __init__(self, exporter: DrawingExporter) -> None:
        self._exporter = exporter
        self._lock = threading.Lock()
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def open(self) -> DrawingExportSession:
        if self._opened:
            raise SessionStateError("drawing export session already opened")
        self._exporter.open()
        self._opened = True
        logger.info("Drawing export session opened")
        return self

    def export(self, source: Path, target: Path) -> ExportResult:
        with self._lock:
            if not self.is_open:
                raise SessionStateError("drawing export session is not open")
            result = self._exporter.export(Path(source), Path(target))
        logger.debug(
            f"Exported {source}: success={result.success}, "
            f"errors={result.error_count}, warnings={result.warning_count}"
        )
        return result

    def close(self) -> None:
        with self._lock:
            if not self._opened or self._closed:
                return
            self._closed = True
            self._exporter.close()
        logger.info("Drawing export session closed")

    def __enter__(self) -> DrawingExportSession:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
