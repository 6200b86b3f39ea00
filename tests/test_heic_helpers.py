"""Tests for HEIC header sniffing and transcoding."""

from io import BytesIO

import pytest
from PIL import Image

from api.errors import ConversionError
from api.heic_helpers import HEIC_BRANDS, convert_heic_to_png, is_heic


def _ftyp_header(brand: bytes) -> bytes:
    return b"\x00\x00\x00\x18ftyp" + brand + b"\x00\x00\x00\x00"


class TestIsHeic:

    @pytest.mark.parametrize("brand", HEIC_BRANDS)
    def test_known_brands_match(self, brand):
        assert is_heic(_ftyp_header(brand))

    def test_png_does_not_match(self, make_png):
        assert not is_heic(make_png(10, 10))

    def test_other_iso_bmff_brand_does_not_match(self):
        assert not is_heic(_ftyp_header(b"avif"))
        assert not is_heic(_ftyp_header(b"isom"))

    def test_brand_without_ftyp_does_not_match(self):
        assert not is_heic(b"\x00\x00\x00\x18moovheic\x00\x00\x00\x00")

    @pytest.mark.parametrize("data", [b"", b"ftyp", b"\x00\x00\x00\x18ftyphei"])
    def test_short_buffers_do_not_match(self, data):
        assert not is_heic(data)

    def test_real_heic_file_matches(self, heic_bytes):
        assert is_heic(heic_bytes)


class TestConvertHeicToPng:

    def test_converts_to_png_with_same_size(self, heic_bytes):
        png_bytes = convert_heic_to_png(heic_bytes)

        with Image.open(BytesIO(png_bytes)) as image:
            assert image.format == "PNG"
            assert image.size == (320, 240)

    def test_corrupt_container_raises_conversion_error(self, corrupt_heic_bytes):
        with pytest.raises(ConversionError) as exc_info:
            convert_heic_to_png(corrupt_heic_bytes)

        assert exc_info.value.details["input_bytes"] == len(corrupt_heic_bytes)
        assert exc_info.value.__cause__ is not None
