"""Tests for the print pipeline exception types."""

import pytest

from api.errors import (
    ConversionError,
    EncodingError,
    InvalidImageError,
    MissingInputError,
    PayloadTooLargeError,
    PhotoPrintError,
)


class TestPhotoPrintError:

    def test_basic_error_creation(self):
        error = PhotoPrintError("Something broke")

        assert str(error) == "Something broke"
        assert error.message == "Something broke"
        assert error.details == {}

    def test_explicit_none_details(self):
        assert PhotoPrintError("x", details=None).details == {}

    def test_error_to_dict(self):
        error = EncodingError("Bad layout", details={"horizontal_gap": -10.5})

        assert error.to_dict() == {
            "error_type": "EncodingError",
            "message": "Bad layout",
            "details": {"horizontal_gap": -10.5},
        }


class TestSpecificErrorTypes:

    @pytest.mark.parametrize("error_class", [
        MissingInputError, PayloadTooLargeError, ConversionError,
        InvalidImageError, EncodingError,
    ])
    def test_all_errors_share_base(self, error_class):
        assert issubclass(error_class, PhotoPrintError)

    def test_missing_input_default_message(self):
        assert MissingInputError().message == "No image provided"

    def test_payload_too_large_details(self):
        error = PayloadTooLargeError(size=200, limit=100)

        assert error.details == {"size": 200, "limit": 100}
        assert "200" in error.message
