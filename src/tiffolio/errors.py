"""
Error taxonomy shared by the conversion and extraction paths.

Per-file errors are raised by the components and caught at the file boundary
in :mod:`tiffolio.pipeline`, so a failing file never aborts a batch.
"""


class TiffolioError(Exception):
    """Base class for all tiffolio errors."""


class DecodeError(TiffolioError):
    """Raised when a raster container or one of its frames cannot be decoded."""


class MissingMetadataError(TiffolioError):
    """Raised when a frame has absent, partial or non-positive density."""


class EncodeError(TiffolioError):
    """Raised when a frame cannot be re-encoded into an embeddable image."""


class IoError(TiffolioError):
    """Raised when a document cannot be written to disk."""


class PartialWriteError(IoError):
    """Raised when a written document does not hold the pages it was given."""


class LayoutOpenError(TiffolioError):
    """Raised when a PDF cannot be opened for word extraction."""


class EncryptedPdfError(LayoutOpenError):
    """Raised when a PDF is encrypted and cannot be read."""


class SessionStateError(TiffolioError):
    """Raised when a drawing export session is used outside open/close."""


class RecordStoreError(TiffolioError):
    """Raised when the record store rejects or fails to create an item."""
