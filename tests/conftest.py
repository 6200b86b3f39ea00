"""
Pytest fixtures for the passport print API tests.

Images are generated on the fly with Pillow so the suite needs no
binary fixtures on disk.
"""

import base64
from io import BytesIO

import pillow_heif
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from api.main import app

PASSPORT_BEIGE = (220, 210, 200)


def encode_image(image: Image.Image, format: str = "PNG") -> bytes:
    with BytesIO() as output:
        image.save(output, format=format)
        return output.getvalue()


@pytest.fixture
def make_png():
    """Factory for solid-colour PNG bytes."""
    def _make(width=400, height=600, color=(100, 150, 200)):
        return encode_image(Image.new("RGB", (width, height), color))
    return _make


@pytest.fixture
def passport_png(make_png):
    """A cropped photo as it arrives from the crop step."""
    return make_png(500, 700, PASSPORT_BEIGE)


@pytest.fixture
def gradient_png():
    """Non-uniform photo so tiles can be compared pixel by pixel."""
    gradient = Image.linear_gradient("L").resize((300, 400))
    image = Image.merge("RGB", (gradient, gradient.rotate(90), gradient))
    return encode_image(image)


@pytest.fixture
def to_data_url():
    def _to_data_url(data: bytes, mime_type: str = "image/png") -> str:
        return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
    return _to_data_url


@pytest.fixture
def heic_bytes():
    """A real HEIC file encoded with pillow-heif."""
    image = Image.new("RGB", (320, 240), (30, 120, 200))
    heif_file = pillow_heif.from_pillow(image)
    with BytesIO() as output:
        heif_file.save(output, quality=90)
        return output.getvalue()


@pytest.fixture
def corrupt_heic_bytes():
    """Valid HEIC header followed by garbage."""
    return b"\x00\x00\x00\x18ftypheic\x00\x00\x00\x00mif1heic" + b"\xde\xad" * 64


@pytest.fixture
def client():
    return TestClient(app)
