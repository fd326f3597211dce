"""
Custom exceptions for the MBTiles tile server.

This module provides:
- Error code constants for consistent error handling
- Exception classes for archive, format and grid failures
- Standardized error response formatting

Usage:
    from mbtileserver.errors import NotAnArchiveError, CorruptDataError

    raise NotAnArchiveError(path, "missing 'metadata' table")
"""

from enum import Enum
from pathlib import Path
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for tile server responses."""

    # Archive errors
    NOT_AN_ARCHIVE = "NOT_AN_ARCHIVE"
    PARSE_ERROR = "PARSE_ERROR"

    # Request errors
    INVALID_PARAMETER = "INVALID_PARAMETER"

    # Payload errors
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    CORRUPT_DATA = "CORRUPT_DATA"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"

    # Generic errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class TileServerError(Exception):
    """Base exception for tile server errors.

    Attributes:
        message: Human-readable error message
        code: ErrorCode for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a standardized error response dict."""
        result = {
            "error": self.message,
            "code": self.code.value,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotAnArchiveError(TileServerError):
    """Raised when a file cannot be opened as an MBTiles archive.

    Examples:
        - File is not an sqlite database
        - 'tiles' or 'metadata' table/view is missing
    """

    def __init__(
        self,
        path: str | Path,
        reason: str,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["path"] = str(path)
        super().__init__(
            message=f"Not a valid MBTiles archive ({reason}): {path}",
            code=ErrorCode.NOT_AN_ARCHIVE,
            details=details,
        )
        self.path = Path(path)
        self.reason = reason


class MetadataParseError(TileServerError):
    """Raised when a required numeric metadata value is malformed."""

    def __init__(
        self,
        key: str,
        value: str,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["key"] = key
        details["value"] = value
        super().__init__(
            message=f"Invalid metadata value for '{key}': {value!r}",
            code=ErrorCode.PARSE_ERROR,
            details=details,
        )
        self.key = key
        self.value = value


class UnsupportedFormatError(TileServerError):
    """Raised when decoding is requested for a non-compressed format."""

    def __init__(self, data_format: Any):
        name = getattr(data_format, "value", data_format)
        super().__init__(
            message=f"Cannot decode data in format: {name}",
            code=ErrorCode.UNSUPPORTED_FORMAT,
            details={"format": str(name)},
        )
        self.data_format = data_format


class CorruptDataError(TileServerError):
    """Raised when compressed or JSON payloads cannot be read."""

    def __init__(
        self,
        message: str = "Corrupt data",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=ErrorCode.CORRUPT_DATA,
            details=details,
        )


class GridNotFoundError(TileServerError):
    """Raised when no UTFGrid is stored for a tile coordinate."""

    def __init__(self, z: int, x: int, y: int):
        super().__init__(
            message=f"Grid not found: {z}/{x}/{y}",
            code=ErrorCode.NOT_FOUND,
            details={"z": z, "x": x, "y": y},
        )
        self.z = z
        self.x = x
        self.y = y


def create_error_response(
    message: str,
    code: ErrorCode | str = ErrorCode.UNKNOWN_ERROR,
    **kwargs: Any,
) -> dict[str, Any]:
    """Create a standardized error response dict.

    Examples:
        return create_error_response(
            "Tileset not found",
            ErrorCode.NOT_FOUND,
            tileset_id=tileset_id,
        )
    """
    result: dict[str, Any] = {
        "error": message,
        "code": code.value if isinstance(code, ErrorCode) else code,
    }
    result.update(kwargs)
    return result
