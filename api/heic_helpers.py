"""HEIC/HEIF detection and transcoding to PNG."""
import logging
from io import BytesIO

import pillow_heif

from api.errors import ConversionError

logger = logging.getLogger(__name__)

# Brand codes in the ftyp box that mark a HEIF container
HEIC_BRANDS = (b"heic", b"heix", b"hevc", b"hevx", b"mif1")


def is_heic(data: bytes) -> bool:
    """
    Sniff the ISO-BMFF header for a HEIF brand.

    Looks for the literal 'ftyp' in bytes 4-12 and one of the known
    brand codes in bytes 8-12. Buffers shorter than 12 bytes are
    never a match.
    """
    if len(data) < 12:
        return False
    if b"ftyp" not in data[4:12]:
        return False
    brand = data[8:12]
    return any(code in brand for code in HEIC_BRANDS)


def convert_heic_to_png(data: bytes) -> bytes:
    """
    Decode a HEIC/HEIF buffer and re-encode it as PNG.

    Args:
        data: Full HEIC file contents

    Returns:
        PNG encoded bytes of the primary image

    Raises:
        ConversionError: the container is corrupt or an unsupported variant
    """
    try:
        heif_file = pillow_heif.open_heif(data, convert_hdr_to_8bit=True)
        image = heif_file.to_pillow()
        with BytesIO() as output:
            image.save(output, format="PNG")
            png_bytes = output.getvalue()
    except Exception as exc:
        logger.error(f"HEIC conversion failed: {exc}")
        raise ConversionError(
            "Failed to convert HEIC image",
            details={"input_bytes": len(data)},
        ) from exc

    logger.info(
        f"Converted HEIC {image.width}x{image.height}px to PNG "
        f"({len(data)} -> {len(png_bytes)} bytes)"
    )
    return png_bytes
