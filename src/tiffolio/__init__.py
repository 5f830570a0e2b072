"""tiffolio: multi-frame TIFF to PDF conversion with title-block text extraction."""

__version__ = "0.1.0"
