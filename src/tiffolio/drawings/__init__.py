from .session import DrawingExporter, DrawingExportSession, ExportResult

__all__ = [
    "DrawingExporter",
    "DrawingExportSession",
    "ExportResult",
]
