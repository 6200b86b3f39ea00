from fastapi import FastAPI, Request, UploadFile, File
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, JSONResponse
import logging
import os
from dotenv import load_dotenv, find_dotenv
from pathlib import Path
from typing import Optional
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from api.errors import (
    ConversionError,
    InvalidImageError,
    MissingInputError,
    PayloadTooLargeError,
    PhotoPrintError,
)
from api.print_layout import (
    DEFAULT_LAYOUT,
    compute_tile_offsets,
    generate_print_layout,
    normalize_to_png,
)
from api.utils import decode_image_payload, print_sheet_to_pdf


# Discover and load .env before reading any settings
_resolved_env = find_dotenv(".env.local")
if not _resolved_env:
    fallback = Path(__file__).resolve().parent / ".env"
    if fallback.exists():
        _resolved_env = str(fallback)

if _resolved_env:
    # Use utf-8-sig to tolerate BOM in files saved with a BOM on Windows
    load_dotenv(_resolved_env, override=True, encoding="utf-8-sig")

# Configure logging early
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("passport-print")
logger.info(f"dotenv loaded from: {_resolved_env or 'not found'}")

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]
# ~11MB of decoded image data
MAX_IMAGE_CHARS = int(os.getenv("MAX_IMAGE_CHARS", "15000000"))

GENERATE_ERROR = "Failed to generate print layout"
CONVERT_ERROR = "Failed to convert image"

# request format -> (encoder format, media type, file extension)
RESPONSE_FORMATS = {
    "png": ("PNG", "image/png", "png"),
    "jpeg": ("JPEG", "image/jpeg", "jpg"),
    "jpg": ("JPEG", "image/jpeg", "jpg"),
    "pdf": ("PNG", "application/pdf", "pdf"),
}


class GeneratePrintRequest(BaseModel):
    croppedImage: Optional[str] = None
    format: Optional[str] = "png"


class TilePosition(BaseModel):
    left: int
    top: int


class LayoutResponse(BaseModel):
    canvas_width: int
    canvas_height: int
    dpi: int
    tile_width: int
    tile_height: int
    border: int
    columns: int
    rows: int
    horizontal_gap: float
    vertical_gap: float
    tiles: list[TilePosition]


app = FastAPI(title="Passport Print API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

prefix = "/api"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
):
    """Map malformed request bodies to the same JSON errors as the routes."""
    errors = exc.errors()
    logger.warning(f"Rejected request to {request.url.path}: {errors}")

    # ("body",) means no body at all; otherwise the last item names the field
    no_image = any(
        tuple(err.get("loc", ())) == ("body",)
        or tuple(err.get("loc", ()))[-1:] in (("croppedImage",), ("file",))
        for err in errors
    )
    if no_image:
        return error_response(400, "No image provided")
    if request.url.path == f"{prefix}/convert_to_png":
        return error_response(400, "Invalid image data")
    return error_response(500, GENERATE_ERROR)


@app.get(f"{prefix}/health")
def health_check():
    return {"status": "healthy"}


@app.get(f"{prefix}/layout", response_model=LayoutResponse)
def layout_endpoint():
    """Describe the print sheet geometry and where each photo lands."""
    layout = DEFAULT_LAYOUT
    return LayoutResponse(
        canvas_width=layout.canvas_width,
        canvas_height=layout.canvas_height,
        dpi=layout.dpi,
        tile_width=layout.tile_width,
        tile_height=layout.tile_height,
        border=layout.border,
        columns=layout.columns,
        rows=layout.rows,
        horizontal_gap=layout.horizontal_gap,
        vertical_gap=layout.vertical_gap,
        tiles=[
            TilePosition(left=p.left, top=p.top)
            for p in compute_tile_offsets(layout)
        ],
    )


@app.post(f"{prefix}/generate-print")
def generate_print_endpoint(payload: GeneratePrintRequest):
    """
    Build a 6x4 inch, 300 DPI sheet with six 35x45mm passport photos.

    Body:
        croppedImage: base64 image, optionally prefixed with
            'data:image/<subtype>;base64,'
        format: "png" (default), "jpeg" or "pdf"

    Returns:
        The sheet inline as passport-photos.<ext>, or a JSON error
    """
    try:
        if not payload.croppedImage:
            raise MissingInputError()
        if len(payload.croppedImage) > MAX_IMAGE_CHARS:
            raise PayloadTooLargeError(
                len(payload.croppedImage), MAX_IMAGE_CHARS
            )
    except MissingInputError as exc:
        logger.warning(exc.message)
        return error_response(400, exc.message)
    except PayloadTooLargeError as exc:
        logger.warning(exc.message)
        return error_response(413, "Image too large")

    requested = (payload.format or "png").strip().lower()
    if requested not in RESPONSE_FORMATS:
        logger.warning(f"Unsupported output format requested: {requested}")
        return error_response(400, "Unsupported output format")
    encoder_format, media_type, extension = RESPONSE_FORMATS[requested]

    try:
        image_bytes = decode_image_payload(payload.croppedImage)
        logger.info(f"Received cropped image: {len(image_bytes)} bytes")

        result = generate_print_layout(
            image_bytes, DEFAULT_LAYOUT, output_format=encoder_format
        )
        if not result.is_valid:
            raise PhotoPrintError(
                "Encoded sheet failed validation",
                details={"width": result.width, "height": result.height,
                         "format": result.format},
            )

        content = result.buffer
        if requested == "pdf":
            content = print_sheet_to_pdf(result.buffer, DEFAULT_LAYOUT.dpi)

        return Response(
            content=content,
            media_type=media_type,
            headers={
                "Content-Disposition":
                    f'inline; filename="passport-photos.{extension}"',
            },
        )
    except PhotoPrintError as exc:
        logger.error(f"Error generating print: {exc.to_dict()}")
        return error_response(500, GENERATE_ERROR)
    except Exception as exc:
        logger.exception(f"Error generating print: {exc}")
        return error_response(500, GENERATE_ERROR)


@app.post(f"{prefix}/convert_to_png")
async def convert_to_png_endpoint(
    file: UploadFile = File(...),
):
    """Convert an uploaded photo (HEIC/HEIF included) to PNG for preview."""
    raw = await file.read()
    if not raw:
        return error_response(400, "No image provided")

    try:
        png_bytes = await run_in_threadpool(normalize_to_png, raw)
    except (ConversionError, InvalidImageError) as exc:
        logger.error(f"convert_to_png failed: {exc.to_dict()}")
        return error_response(400, "Invalid image data")
    except Exception as exc:
        logger.exception(f"convert_to_png failed: {exc}")
        return error_response(500, CONVERT_ERROR)

    return Response(content=png_bytes, media_type="image/png")
