"""
Page Image Loading

Turns scanned uploads (PNG/JPEG bytes, image files, PDF scans) into
read-only pixel buffers for the decoder. Anything that cannot be turned
into pixels raises CodecError; the decoder itself never parses bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Tuple, Union

import cv2
import numpy as np
from pdf2image import convert_from_bytes


class CodecError(Exception):
    """Scanned input could not be decoded into a pixel buffer."""

    pass


@dataclass(frozen=True, eq=False)
class PageImage:
    """Read-only page raster: grayscale (H, W), BGR or BGRA (H, W, C)."""

    pixels: np.ndarray

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PageImage":
        """
        Wrap a decoded raster without copying it.

        Raises:
            CodecError: If the array is not a non-empty 8-bit image
        """
        pixels = np.asarray(array)
        if pixels.ndim == 3 and pixels.shape[2] == 1:
            pixels = pixels[:, :, 0]
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] not in (3, 4)):
            raise CodecError(f"Unsupported image shape: {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise CodecError(f"Unsupported pixel type: {pixels.dtype}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise CodecError("Image has no pixels")

        view = pixels.view()
        view.flags.writeable = False
        return cls(pixels=view)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def gray_region(self, left: int, top: int, width: int, height: int) -> np.ndarray:
        """Single-channel copy of a rectangle already clipped to the page."""
        region = np.ascontiguousarray(self.pixels[top : top + height, left : left + width])
        if region.ndim == 2:
            return region
        if region.shape[2] == 4:
            return cv2.cvtColor(region, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(region, cv2.COLOR_BGR2GRAY)


def as_page_image(image: Union[PageImage, np.ndarray]) -> PageImage:
    """Accept either a PageImage or a raw OpenCV array."""
    if isinstance(image, PageImage):
        return image
    return PageImage.from_array(image)


def decode_image_bytes(data: bytes) -> PageImage:
    """
    Decode PNG/JPEG (or any OpenCV-readable) bytes.

    Args:
        data: Raw encoded image content

    Returns:
        PageImage with BGR pixels

    Raises:
        CodecError: If the bytes are empty or not a readable image
    """
    if not data:
        raise CodecError("Image data is empty")
    buffer = np.frombuffer(data, dtype=np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise CodecError(f"Failed to decode image: {e}") from e
    if image is None:
        raise CodecError("Failed to decode image: unsupported or corrupt data")
    return PageImage.from_array(image)


def load_image(path: Union[str, Path]) -> PageImage:
    """
    Read and decode an image file.

    Raises:
        CodecError: If the file cannot be read or decoded
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise CodecError(f"Failed to read image file {path}: {e}") from e
    return decode_image_bytes(data)


def pdf_bytes_to_pages(
    pdf_bytes: bytes, dpi: int = 200
) -> Iterator[Tuple[int, PageImage]]:
    """
    Convert PDF bytes to page images.

    Args:
        pdf_bytes: Raw PDF content as bytes
        dpi: Resolution for rendering; 200 matches the default A4 reference size

    Yields:
        Tuples of (page_number, PageImage) where page_number is 1-indexed

    Raises:
        CodecError: If the PDF cannot be rendered
    """
    try:
        pil_images = convert_from_bytes(pdf_bytes, dpi=dpi)
    except Exception as e:
        raise CodecError(f"Failed to read PDF: {e}") from e

    for page_num, pil_image in enumerate(pil_images, start=1):
        # Convert PIL RGB to OpenCV BGR
        rgb_array = np.array(pil_image.convert("RGB"))
        bgr_array = cv2.cvtColor(rgb_array, cv2.COLOR_RGB2BGR)
        yield page_num, PageImage.from_array(bgr_array)


def count_pdf_pages(pdf_bytes: bytes) -> int:
    """
    Count the number of pages in a PDF.

    Raises:
        CodecError: If the PDF cannot be rendered
    """
    # Use low DPI just to count pages quickly
    try:
        pil_images = convert_from_bytes(pdf_bytes, dpi=72)
    except Exception as e:
        raise CodecError(f"Failed to read PDF: {e}") from e
    return len(pil_images)
