"""
Compose a 6x4 inch print sheet holding six passport photos.

The cropped photo is stretched to the UK passport content box (35x45 mm),
framed with a white cutting border and pasted six times in a 3x2 grid on
a white canvas tagged for 300 DPI printing.
"""
import logging
import math
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps

from api.errors import EncodingError, InvalidImageError
from api.heic_helpers import convert_heic_to_png, is_heic
from api.utils import (
    inches_to_pixels,
    mm_to_pixels,
    read_image_dimensions_and_ratio,
)

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)

# Pillow format name -> media type
OUTPUT_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
}


@dataclass(frozen=True)
class LayoutGeometry:
    """
    Fixed geometry of the print sheet, in pixels.

    canvas_width/canvas_height:
        Output sheet size. 6x4 inches at 300 DPI by default.
    content_width/content_height:
        Photo area before the border (35x45 mm at 300 DPI).
    border:
        White frame added on every side of each photo.
    columns/rows:
        Grid shape; tiles are spread with equal gaps on both axes.
    """
    canvas_width: int = 1800
    canvas_height: int = 1200
    dpi: int = 300
    content_width: int = 413
    content_height: int = 531
    border: int = 12
    columns: int = 3
    rows: int = 2
    background: tuple[int, int, int] = WHITE

    def __post_init__(self):
        for name in ("canvas_width", "canvas_height", "dpi", "content_width",
                     "content_height", "columns", "rows"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.border < 0:
            raise ValueError("border must not be negative")

    @classmethod
    def from_physical(
        cls,
        sheet_width_in: float = 6,
        sheet_height_in: float = 4,
        photo_width_mm: float = 35,
        photo_height_mm: float = 45,
        dpi: int = 300,
        border: int = 12,
        columns: int = 3,
        rows: int = 2,
    ) -> "LayoutGeometry":
        """Build a geometry from sheet inches and photo millimetres."""
        canvas_width, canvas_height = inches_to_pixels(
            sheet_width_in, sheet_height_in, dpi
        )
        content_width, content_height = mm_to_pixels(
            photo_width_mm, photo_height_mm, dpi
        )
        return cls(
            canvas_width=canvas_width,
            canvas_height=canvas_height,
            dpi=dpi,
            content_width=content_width,
            content_height=content_height,
            border=border,
            columns=columns,
            rows=rows,
        )

    @property
    def tile_width(self) -> int:
        return self.content_width + 2 * self.border

    @property
    def tile_height(self) -> int:
        return self.content_height + 2 * self.border

    @property
    def horizontal_gap(self) -> float:
        return (self.canvas_width - self.columns * self.tile_width) \
            / (self.columns + 1)

    @property
    def vertical_gap(self) -> float:
        return (self.canvas_height - self.rows * self.tile_height) \
            / (self.rows + 1)


DEFAULT_LAYOUT = LayoutGeometry()


@dataclass(frozen=True)
class TilePlacement:
    """Top-left corner of one tile on the canvas."""
    left: int
    top: int


@dataclass(frozen=True)
class ProcessingResult:
    buffer: bytes
    width: int
    height: int
    is_valid: bool
    format: str
    media_type: str


def _round_half_up(value: float) -> int:
    # offsets are never negative here, so this is half away from zero
    return math.floor(value + 0.5)


def compute_tile_offsets(
    layout: LayoutGeometry = DEFAULT_LAYOUT
) -> list[TilePlacement]:
    """
    Compute row-major tile positions for the grid.

    One gap sits before the first tile, one between each pair and one
    after the last, independently for each axis.

    Raises:
        EncodingError: the tiles do not fit on the canvas
    """
    h_gap = layout.horizontal_gap
    v_gap = layout.vertical_gap
    if h_gap <= 0 or v_gap <= 0:
        raise EncodingError(
            f"{layout.columns}x{layout.rows} tiles of "
            f"{layout.tile_width}x{layout.tile_height}px do not fit on a "
            f"{layout.canvas_width}x{layout.canvas_height}px canvas",
            details={"horizontal_gap": h_gap, "vertical_gap": v_gap},
        )

    placements = []
    for row in range(layout.rows):
        for col in range(layout.columns):
            left = _round_half_up(h_gap * (col + 1) + layout.tile_width * col)
            top = _round_half_up(v_gap * (row + 1) + layout.tile_height * row)
            placements.append(TilePlacement(left=left, top=top))
    return placements


def load_print_source(image_bytes: bytes) -> Image.Image:
    """
    Turn uploaded bytes into an RGB image ready for resizing.

    HEIC/HEIF containers are transcoded to PNG first. Transparent areas
    are flattened onto white so they print as paper colour.

    Raises:
        ConversionError: HEIC transcode failed
        InvalidImageError: the bytes are not a decodable image
    """
    if is_heic(image_bytes):
        logger.info("HEIC container detected, converting to PNG")
        image_bytes = convert_heic_to_png(image_bytes)

    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
        image = ImageOps.exif_transpose(image)
    except Exception as exc:
        logger.error(f"Could not decode image ({len(image_bytes)} bytes): {exc}")
        raise InvalidImageError(
            "Image data could not be decoded",
            details={"input_bytes": len(image_bytes)},
        ) from exc

    if image.width == 0 or image.height == 0:
        raise InvalidImageError("Image has no pixels")
    width, height, ratio = read_image_dimensions_and_ratio(image)
    logger.info(
        f"Source: {width}x{height}px (ratio {ratio:.3f}), mode {image.mode}"
    )

    if image.mode in ("RGBA", "LA", "PA") or \
            (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        white = Image.new("RGBA", rgba.size, WHITE + (255,))
        return Image.alpha_composite(white, rgba).convert("RGB")
    return image.convert("RGB")


def normalize_to_png(image_bytes: bytes) -> bytes:
    """Decode any supported upload (HEIC included) and re-encode as PNG."""
    image = load_print_source(image_bytes)
    with BytesIO() as output:
        image.save(output, format="PNG")
        return output.getvalue()


def make_tile(
    image: Image.Image,
    layout: LayoutGeometry = DEFAULT_LAYOUT
) -> Image.Image:
    """Stretch the photo to the content box and frame it with the border."""
    resized = image.resize(
        (layout.content_width, layout.content_height), Image.LANCZOS
    )
    if layout.border == 0:
        return resized
    return ImageOps.expand(resized, border=layout.border,
                           fill=layout.background)


def generate_print_layout(
    image_bytes: bytes,
    layout: LayoutGeometry = DEFAULT_LAYOUT,
    output_format: str = "PNG",
) -> ProcessingResult:
    """
    Build the print sheet from a cropped photo.

    Args:
        image_bytes: Encoded cropped photo (PNG, JPEG, HEIC, ...)
        layout: Sheet geometry
        output_format: "PNG" (default) or "JPEG"

    Returns:
        ProcessingResult holding the encoded sheet and its decoded size

    Raises:
        ConversionError, InvalidImageError, EncodingError
    """
    output_format = output_format.upper()
    if output_format not in OUTPUT_FORMATS:
        raise EncodingError(f"Unsupported output format: {output_format}")
    media_type = OUTPUT_FORMATS[output_format]

    source = load_print_source(image_bytes)
    placements = compute_tile_offsets(layout)

    # One tile, pasted at every placement
    tile = make_tile(source, layout)
    logger.info(
        f"Tile: {tile.width}x{tile.height}px, gaps "
        f"{layout.horizontal_gap:.2f}x{layout.vertical_gap:.2f}px, "
        f"offsets {[(p.left, p.top) for p in placements]}"
    )

    canvas = Image.new(
        "RGB", (layout.canvas_width, layout.canvas_height), layout.background
    )
    for placement in placements:
        canvas.paste(tile, (placement.left, placement.top))

    save_kwargs = {"dpi": (layout.dpi, layout.dpi)}
    if output_format == "JPEG":
        save_kwargs["quality"] = 95
    try:
        with BytesIO() as output:
            canvas.save(output, format=output_format, **save_kwargs)
            buffer = output.getvalue()
    except Exception as exc:
        raise EncodingError(
            f"Failed to encode print sheet as {output_format}"
        ) from exc

    try:
        with Image.open(BytesIO(buffer)) as encoded:
            width, height = encoded.size
            decoded_format = encoded.format
    except Exception as exc:
        raise EncodingError("Encoded print sheet could not be read back") \
            from exc

    is_valid = decoded_format == output_format and width > 0 and height > 0
    logger.info(
        f"Print sheet: {width}x{height}px {decoded_format} at "
        f"{layout.dpi} DPI, {len(buffer)} bytes, valid={is_valid}"
    )
    return ProcessingResult(
        buffer=buffer,
        width=width,
        height=height,
        is_valid=is_valid,
        format=output_format,
        media_type=media_type,
    )
