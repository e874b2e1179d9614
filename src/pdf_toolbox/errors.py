"""Exception and warning types raised by pdf-toolbox."""

from __future__ import annotations


class PdfToolboxError(Exception):
    """Base exception for pdf-toolbox errors."""


class UnsupportedMediaType(PdfToolboxError):
    """Raised when an input is neither a PDF nor a supported image."""


class UnsupportedImageFormat(UnsupportedMediaType):
    """Raised when an image media type is outside JPEG/PNG."""


class ImageDecodeError(PdfToolboxError):
    """Raised when image bytes cannot be decoded as the declared type."""


class MergeError(PdfToolboxError):
    """Base class for failures while merging source documents."""

    def __init__(self, message: str, *, item_name: str | None = None) -> None:
        super().__init__(message)
        self.item_name = item_name


class PdfLoadError(MergeError):
    """Raised when a source document cannot be parsed as a PDF."""


class PageCopyError(MergeError):
    """Raised when a page cannot be copied into the merged document."""


class MergeCancelled(MergeError):
    """Raised when a merge is cancelled between two source documents."""


class CompressionError(PdfToolboxError):
    """Base class for compression backend failures."""


class CompressionTimeout(CompressionError):
    """Raised when the compression backend does not answer in time."""


class CompressionCancelled(CompressionError):
    """Raised when a compression job is cancelled by the caller."""


class CompressionBusy(CompressionError):
    """Raised when a gateway already has a job in flight."""


class CompressionBackendError(CompressionError):
    """Raised when the backend cannot start, crashes, or answers wrongly."""


class ArtifactLoadError(PdfToolboxError):
    """Raised when an artifact handle cannot be fetched."""


class CompressionDegraded(UserWarning):
    """Compression failed and the uncompressed document was used instead."""
