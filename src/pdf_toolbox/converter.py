"""Convert JPEG/PNG images into single-page A4 PDF documents."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import img2pdf
from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError, UnsupportedImageFormat

logger = logging.getLogger(__name__)

# A4 portrait in PDF points.
A4: tuple[float, float] = (595, 842)

# Media type -> Pillow format name.
SUPPORTED_IMAGE_TYPES: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
}


@dataclass(frozen=True)
class PageLayout:
    """Placement of an image scaled to fit inside a page."""

    page_width: float
    page_height: float
    scale: float
    width: float
    height: float
    x: float
    y: float


def fit_to_page(
    width: float,
    height: float,
    *,
    page_size: tuple[float, float] = A4,
) -> PageLayout:
    """Scale ``width`` x ``height`` uniformly to fit *page_size* and center it.

    The scale factor is the largest one that keeps both dimensions inside
    the page, so small images are enlarged and large ones are shrunk; the
    image is never cropped.

    Raises:
        ValueError: If any dimension is not positive.
    """
    page_width, page_height = page_size
    if width <= 0 or height <= 0:
        raise ValueError(f"image dimensions must be positive, got {width}x{height}")
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f"page dimensions must be positive, got {page_width}x{page_height}")

    scale = min(page_width / width, page_height / height)
    scaled_width = width * scale
    scaled_height = height * scale

    return PageLayout(
        page_width=page_width,
        page_height=page_height,
        scale=scale,
        width=scaled_width,
        height=scaled_height,
        x=(page_width - scaled_width) / 2,
        y=(page_height - scaled_height) / 2,
    )


def _layout_fun(page_size: tuple[float, float]):
    """Build an img2pdf layout function placing images with :func:`fit_to_page`.

    img2pdf centers the image on the page itself, which yields the same
    offsets as :attr:`PageLayout.x` and :attr:`PageLayout.y`.
    """

    def layout(imgwidthpx, imgheightpx, ndpi):
        # Natural size is the pixel size taken as points, regardless of DPI.
        placed = fit_to_page(imgwidthpx, imgheightpx, page_size=page_size)
        return placed.page_width, placed.page_height, placed.width, placed.height

    return layout


def _probe_image(data: bytes, expected_format: str) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            actual_format = img.format
            img.load()
            size = img.size
    except (UnidentifiedImageError, OSError, ValueError, EOFError, SyntaxError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc

    if actual_format != expected_format:
        raise ImageDecodeError(
            f"Image content is {actual_format or 'unknown'}, expected {expected_format}"
        )
    return size


def image_to_pdf(
    *,
    data: bytes,
    media_type: str,
    page_size: tuple[float, float] = A4,
) -> bytes:
    """Embed a JPEG or PNG image into a new single-page PDF.

    Args:
        data: Raw image bytes.
        media_type: Declared media type, ``image/jpeg`` or ``image/png``.
        page_size: Page size in points. Defaults to A4 portrait.

    Returns:
        The serialized one-page PDF document.

    Raises:
        UnsupportedImageFormat: If *media_type* is not JPEG or PNG.
        ImageDecodeError: If *data* is not a valid image of that type.
    """
    expected_format = SUPPORTED_IMAGE_TYPES.get(media_type.lower())
    if expected_format is None:
        raise UnsupportedImageFormat(
            f"Unsupported image type: {media_type} "
            f"(supported: {', '.join(SUPPORTED_IMAGE_TYPES)})"
        )

    width, height = _probe_image(data, expected_format)

    try:
        pdf_bytes = img2pdf.convert(data, layout_fun=_layout_fun(page_size))
    except (img2pdf.ImageOpenError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Cannot embed image: {exc}") from exc

    logger.debug(
        "Converted %dx%d %s image into a %d-byte PDF page",
        width,
        height,
        expected_format,
        len(pdf_bytes),
    )
    return pdf_bytes
