"""Concatenate the pages of several PDF documents into one."""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from .errors import MergeCancelled, MergeError, PageCopyError, PdfLoadError

if TYPE_CHECKING:
    from .documents import SourceItem

logger = logging.getLogger(__name__)


class CancelEvent(Protocol):
    def is_set(self) -> bool: ...


def _open_source(item: SourceItem) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(item.data))
        if reader.is_encrypted and reader.decrypt("") == PasswordType.NOT_DECRYPTED:
            raise PdfLoadError(
                f"PDF {item.name!r} is password protected", item_name=item.name
            )
        # Force the page tree to be read so broken documents fail here.
        len(reader.pages)
    except (PyPdfError, OSError, ValueError, KeyError, NotImplementedError) as exc:
        raise PdfLoadError(
            f"Cannot read PDF {item.name!r}: {exc}", item_name=item.name
        ) from exc
    return reader


def page_count(data: bytes) -> int:
    """Return the number of pages in a serialized PDF."""
    return len(PdfReader(io.BytesIO(data)).pages)


def merge_pdfs(
    items: Sequence[SourceItem],
    *,
    cancel_event: CancelEvent | None = None,
) -> bytes:
    """Merge source documents into a single PDF, in list order.

    Every page of every item is copied structurally (content streams,
    fonts and resources are kept) in the item's own page order. Items are
    handled one at a time, so only one parsed source is alive next to the
    output document.

    Args:
        items: Ordered source items. The sequence is copied on entry, so
            later changes to the caller's list do not affect the merge.
        cancel_event: Optional event checked between documents.

    Returns:
        The merged PDF bytes.

    Raises:
        ValueError: If *items* is empty.
        PdfLoadError: If an item cannot be parsed.
        PageCopyError: If a page of an item cannot be copied.
        MergeError: If the merged document cannot be serialized.
        MergeCancelled: If *cancel_event* is set before the merge finishes.
    """
    snapshot = tuple(items)
    if not snapshot:
        raise ValueError("items must not be empty")

    writer = PdfWriter()

    for item in snapshot:
        if cancel_event is not None and cancel_event.is_set():
            raise MergeCancelled(
                f"Merge cancelled before {item.name!r}", item_name=item.name
            )

        reader = _open_source(item)
        for index, page in enumerate(reader.pages):
            try:
                writer.add_page(page)
            except (PyPdfError, OSError, ValueError, KeyError, TypeError) as exc:
                raise PageCopyError(
                    f"Cannot copy page {index + 1} of {item.name!r}: {exc}",
                    item_name=item.name,
                ) from exc

        logger.debug("Appended %d page(s) from %s", len(reader.pages), item.name)

    buffer = io.BytesIO()
    try:
        writer.write(buffer)
    except (PyPdfError, OSError, ValueError, KeyError, TypeError) as exc:
        raise MergeError(f"Cannot write merged document: {exc}") from exc
    merged = buffer.getvalue()

    logger.info(
        "Merged %d document(s) into %d page(s), %d bytes",
        len(snapshot),
        len(writer.pages),
        len(merged),
    )
    return merged
