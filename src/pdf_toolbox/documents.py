"""Source items and the ordered list that drives merge order."""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path

from .converter import SUPPORTED_IMAGE_TYPES, image_to_pdf
from .errors import ImageDecodeError, UnsupportedImageFormat, UnsupportedMediaType
from .merger import page_count

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

ACCEPTED_MEDIA_TYPES = frozenset({PDF_MEDIA_TYPE, *SUPPORTED_IMAGE_TYPES})


@dataclass(frozen=True)
class SourceItem:
    """One input document, always held as PDF bytes."""

    id: int
    name: str
    data: bytes = field(repr=False)
    original_size: int

    @property
    def size_in_mb(self) -> str:
        return f"{self.original_size / (1024 * 1024):.2f}"

    @property
    def page_count(self) -> int:
        return page_count(self.data)


def guess_media_type(path: Path | str) -> str:
    """Guess the media type of *path* from its file name."""
    media_type, _ = mimetypes.guess_type(str(path))
    return media_type or "application/octet-stream"


def to_pdf_bytes(*, data: bytes, media_type: str) -> bytes:
    """Return *data* as PDF bytes, converting supported images.

    Raises:
        UnsupportedImageFormat: For ``image/*`` types other than JPEG/PNG.
        UnsupportedMediaType: For any other non-PDF type.
        ImageDecodeError: If an image cannot be decoded.
    """
    media_type = media_type.lower()
    if media_type == PDF_MEDIA_TYPE:
        return data
    if media_type.startswith("image/"):
        if media_type not in SUPPORTED_IMAGE_TYPES:
            raise UnsupportedImageFormat(
                f"Unsupported image type: {media_type} "
                f"(supported: {', '.join(SUPPORTED_IMAGE_TYPES)})"
            )
        return image_to_pdf(data=data, media_type=media_type)
    raise UnsupportedMediaType(
        f"Unsupported media type: {media_type} "
        f"(accepted: {', '.join(sorted(ACCEPTED_MEDIA_TYPES))})"
    )


@dataclass(frozen=True)
class DocumentList:
    """Immutable ordered collection of :class:`SourceItem`.

    Every mutating operation returns a new list. Ids are assigned from a
    monotonically increasing counter, never reused, and stay attached to
    their item across reorders.
    """

    items: tuple[SourceItem, ...] = ()
    next_id: int = 0

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[SourceItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> SourceItem:
        return self.items[index]

    @property
    def ids(self) -> list[int]:
        return [item.id for item in self.items]

    def snapshot(self) -> tuple[SourceItem, ...]:
        return self.items

    def get(self, item_id: int) -> SourceItem:
        return self.items[self._index_of(item_id)]

    def add(self, name: str, data: bytes, media_type: str) -> DocumentList:
        """Append a new item, converting images to PDF eagerly."""
        try:
            pdf_bytes = to_pdf_bytes(data=data, media_type=media_type)
        except (UnsupportedMediaType, ImageDecodeError) as exc:
            raise type(exc)(f"{name}: {exc}") from exc
        item = SourceItem(
            id=self.next_id,
            name=name,
            data=pdf_bytes,
            original_size=len(data),
        )
        logger.debug("Added %s as item %d (%s MB)", name, item.id, item.size_in_mb)
        return replace(self, items=(*self.items, item), next_id=self.next_id + 1)

    def add_path(self, path: Path | str) -> DocumentList:
        """Read *path* and append it, guessing its media type from the name."""
        path = Path(path)
        return self.add(path.name, path.read_bytes(), guess_media_type(path))

    def extend_paths(self, paths: Iterable[Path | str]) -> DocumentList:
        documents = self
        for path in paths:
            documents = documents.add_path(path)
        return documents

    def remove(self, item_id: int) -> DocumentList:
        index = self._index_of(item_id)
        return replace(self, items=self.items[:index] + self.items[index + 1 :])

    def move(self, item_id: int, new_index: int) -> DocumentList:
        """Move an item to *new_index* (clamped to the list bounds)."""
        index = self._index_of(item_id)
        items = list(self.items)
        item = items.pop(index)
        new_index = max(0, min(new_index, len(items)))
        items.insert(new_index, item)
        return replace(self, items=tuple(items))

    def reorder(self, ids: Iterable[int]) -> DocumentList:
        """Rearrange items to follow *ids*, which must be a permutation."""
        ids = list(ids)
        if sorted(ids) != sorted(self.ids):
            raise ValueError(f"{ids} is not a permutation of {self.ids}")
        by_id = {item.id: item for item in self.items}
        return replace(self, items=tuple(by_id[i] for i in ids))

    def _index_of(self, item_id: int) -> int:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        raise KeyError(item_id)
