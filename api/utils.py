import base64
import binascii
import logging
import re
from io import BytesIO

import fitz
from PIL import Image

from api.errors import InvalidImageError

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4
POINTS_PER_INCH = 72

# data:image/png;base64, data:image/jpeg;base64, data:image/svg+xml;base64, ...
DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def mm_to_pixels(x_mm, y_mm, dpi):
    """
    Calculates the number of pixels for given dimensions in millimeters (mm)
    and a specific resolution in Dots Per Inch (DPI).

    Args:
        x_mm (float): The width in millimeters.
        y_mm (float): The height in millimeters.
        dpi (int): The resolution in Dots Per Inch.

    Returns:
        tuple: (x_pixels, y_pixels) rounded to the nearest pixel.
    """
    x_pixels = (x_mm / MM_PER_INCH) * dpi
    y_pixels = (y_mm / MM_PER_INCH) * dpi
    return round(x_pixels), round(y_pixels)


def inches_to_pixels(x_inch: float, y_inch: float, dpi: int) -> tuple[int, int]:
    """Convert a physical size in inches to whole pixels."""
    return round(x_inch * dpi), round(y_inch * dpi)


def read_image_dimensions_and_ratio(
    image: Image.Image
) -> tuple[int, int, float]:
    """Read image dimensions and aspect ratio."""
    width, height = image.size
    aspect_ratio = width / height
    return width, height, aspect_ratio


def strip_data_url_prefix(payload: str) -> str:
    """Remove a leading 'data:image/<subtype>;base64,' if present."""
    return DATA_URL_PREFIX.sub("", payload.strip(), count=1)


def decode_image_payload(payload: str) -> bytes:
    """
    Decode a base64 image string, with or without a data URL prefix.

    Raises:
        InvalidImageError: payload is not valid base64
    """
    base64_data = "".join(strip_data_url_prefix(payload).split())
    # canvas encoders and browsers sometimes drop the trailing "=" padding
    base64_data += "=" * (-len(base64_data) % 4)
    try:
        return base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError(
            "Image payload is not valid base64",
            details={"length": len(base64_data)},
        ) from exc


def print_sheet_to_pdf(image_bytes: bytes, dpi: int) -> bytes:
    """
    Wrap an encoded print sheet in a single-page PDF at its physical size.

    The page is sized from the pixel dimensions and DPI, so a 1800x1200
    sheet at 300 DPI becomes a 6x4 inch (432x288 pt) page.
    """
    with Image.open(BytesIO(image_bytes)) as image:
        width_px, height_px = image.size

    width_pts = (width_px / dpi) * POINTS_PER_INCH
    height_pts = (height_px / dpi) * POINTS_PER_INCH

    pdf_doc = fitz.open()
    try:
        page = pdf_doc.new_page(width=width_pts, height=height_pts)
        page.insert_image(
            fitz.Rect(0, 0, width_pts, height_pts),
            stream=image_bytes
        )
        pdf_bytes = pdf_doc.tobytes()
    finally:
        pdf_doc.close()

    logger.info(
        f"PDF page: {width_pts:.2f}x{height_pts:.2f}pts "
        f"({width_pts / POINTS_PER_INCH:.2f}x"
        f"{height_pts / POINTS_PER_INCH:.2f}in)"
    )
    return pdf_bytes
