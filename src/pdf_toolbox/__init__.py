"""pdf-toolbox: Merge PDFs and JPEG/PNG images into one, optionally compressed, PDF."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .artifact import DEFAULT_NAME, Artifact, ArtifactLoader
from .compression import (
    CompressionGateway,
    CompressionOutcome,
    GhostscriptWorker,
    compress_with_fallback,
)
from .converter import A4, PageLayout, fit_to_page, image_to_pdf
from .documents import DocumentList, SourceItem
from .errors import (
    ArtifactLoadError,
    CompressionBackendError,
    CompressionBusy,
    CompressionCancelled,
    CompressionDegraded,
    CompressionError,
    CompressionTimeout,
    ImageDecodeError,
    MergeCancelled,
    MergeError,
    PageCopyError,
    PdfLoadError,
    PdfToolboxError,
    UnsupportedImageFormat,
    UnsupportedMediaType,
)
from .merger import merge_pdfs, page_count

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "A4",
    "Artifact",
    "ArtifactLoadError",
    "ArtifactLoader",
    "BuildResult",
    "CompressionBackendError",
    "CompressionBusy",
    "CompressionCancelled",
    "CompressionDegraded",
    "CompressionError",
    "CompressionGateway",
    "CompressionOutcome",
    "CompressionTimeout",
    "DocumentList",
    "GhostscriptWorker",
    "ImageDecodeError",
    "MergeCancelled",
    "MergeError",
    "PageCopyError",
    "PageLayout",
    "PdfLoadError",
    "PdfToolboxError",
    "SourceItem",
    "UnsupportedImageFormat",
    "UnsupportedMediaType",
    "build_document",
    "compress_with_fallback",
    "fit_to_page",
    "image_to_pdf",
    "merge_pdfs",
    "page_count",
]

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Summary of a merge (and optional compression) run."""

    output_path: Path
    item_count: int
    page_count: int
    merged_size: int
    final_size: int
    compressed: bool
    degraded: bool = False
    warning: str | None = None


def _resolve_output_path(*, output: Path | str | None) -> Path:
    """Resolve the output PDF file path.

    Rules:
        - ``None`` → ``{cwd}/merged.pdf``
        - Ends in ``.pdf`` → treated as literal file path
        - Otherwise → treated as directory: ``{path}/merged.pdf``
    """
    if output is None:
        return Path(DEFAULT_NAME).resolve()

    output = Path(output)
    if output.suffix.lower() == ".pdf":
        return output.resolve()

    return (output / DEFAULT_NAME).resolve()


async def build_document(
    *,
    inputs: Sequence[Path | str],
    output: Path | str | None = None,
    compress: bool = True,
    quality: str = "ebook",
    timeout: float = 120.0,
    gateway: CompressionGateway | None = None,
    loader: ArtifactLoader | None = None,
    cancel_event: asyncio.Event | None = None,
) -> BuildResult:
    """Merge PDF and image files into one PDF and write it to disk.

    Images are converted to A4 pages as they are read; the merged document
    is then optionally compressed. A failed compression does not fail the
    build: the uncompressed document is written and the result is marked
    ``degraded``.

    Args:
        inputs: Ordered PDF, JPEG or PNG files. Their order is the page order.
        output: Output path. Omit for ``merged.pdf`` in the CWD, pass a
            ``.pdf`` path to use it literally, or pass a directory to save
            ``merged.pdf`` inside it.
        compress: Run the merged document through the compression backend.
        quality: Ghostscript ``PDFSETTINGS`` preset for the default backend.
        timeout: Seconds to wait for the compression backend.
        gateway: Custom compression gateway (overrides *quality*/*timeout*).
        loader: Custom artifact loader.
        cancel_event: Setting this event stops the build. Before the merge
            has finished it raises :class:`MergeCancelled`; during
            compression the uncompressed document is written instead.

    Returns:
        A :class:`BuildResult` summarizing the outcome.

    Raises:
        ValueError: If *inputs* is empty.
        UnsupportedMediaType: If an input is not a PDF, JPEG or PNG.
        ImageDecodeError: If an image cannot be decoded.
        MergeError: If a PDF cannot be read or copied.
        MergeCancelled: If *cancel_event* is set before the merge finishes.

    Example::

        import asyncio
        from pdf_toolbox import build_document

        result = asyncio.run(build_document(inputs=["a.pdf", "photo.jpg", "b.pdf"]))
        print(f"Saved PDF to {result.output_path}")
    """
    if not inputs:
        raise ValueError("inputs must not be empty")

    output_path = _resolve_output_path(output=output)
    documents = await asyncio.to_thread(DocumentList().extend_paths, inputs)

    merged = await asyncio.to_thread(
        merge_pdfs, documents.snapshot(), cancel_event=cancel_event
    )
    pages = page_count(merged)

    if compress:
        gateway = gateway or CompressionGateway(
            functools.partial(GhostscriptWorker, quality=quality),
            timeout=timeout,
        )
        outcome = await compress_with_fallback(
            merged,
            gateway=gateway,
            loader=loader,
            name=output_path.name,
            cancel_event=cancel_event,
        )
    else:
        outcome = CompressionOutcome(
            artifact=Artifact.from_bytes(merged, name=output_path.name),
            original_size=len(merged),
        )

    final_size = await asyncio.to_thread(outcome.artifact.save, output_path)
    logger.info("Wrote %s (%d bytes)", output_path, final_size)

    return BuildResult(
        output_path=output_path,
        item_count=len(documents),
        page_count=pages,
        merged_size=len(merged),
        final_size=final_size,
        compressed=outcome.compressed,
        degraded=outcome.degraded,
        warning=outcome.reason,
    )
