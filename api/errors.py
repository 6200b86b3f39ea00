"""Exceptions raised by the passport print pipeline."""
from typing import Any, Optional


class PhotoPrintError(Exception):
    """Base exception for all print layout failures."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class MissingInputError(PhotoPrintError):
    """Raised when the request carries no image."""

    def __init__(self, message: str = "No image provided"):
        super().__init__(message)


class PayloadTooLargeError(PhotoPrintError):
    """Raised when the encoded image exceeds the configured size cap."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Image payload of {size} characters exceeds limit of {limit}",
            details={"size": size, "limit": limit},
        )


class ConversionError(PhotoPrintError):
    """Raised when a HEIC/HEIF container cannot be transcoded."""
    pass


class InvalidImageError(PhotoPrintError):
    """Raised when the bytes cannot be decoded as a raster image."""
    pass


class EncodingError(PhotoPrintError):
    """Raised when the layout cannot be composed or encoded."""
    pass
