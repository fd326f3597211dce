"""
Payload format detection and compression helpers.

Features:
- Closed set of tile/grid payload formats with extension and media type lookups
- Magic-number sniffing of raw tile and grid blobs
- gzip/zlib decoding of UTFGrid payloads, gzip encoding
"""

import gzip
import zlib
from enum import Enum

from mbtileserver.errors import CorruptDataError, UnsupportedFormatError

# =============================================================================
# Constants
# =============================================================================

GZIP_MAGIC = b"\x1f\x8b"
ZLIB_MAGIC = b"\x78\x9c"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPG_MAGIC = b"\xff\xd8\xff"
RIFF_MAGIC = b"RIFF"
WEBP_MAGIC = b"WEBP"


# =============================================================================
# Data Format
# =============================================================================


class DataFormat(str, Enum):
    """Payload format of a tile or grid blob."""

    PNG = "png"
    JPG = "jpg"
    WEBP = "webp"
    JSON = "json"
    PBF = "pbf"
    GZIP = "gzip"
    ZLIB = "zlib"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> "DataFormat":
        """Look up a format by name, falling back to UNKNOWN."""
        name = name.lower()
        if name == "jpeg":
            return cls.JPG
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN

    @property
    def extension(self) -> str:
        """File extension used in tile URLs (empty for wrappers and UNKNOWN)."""
        return _EXTENSIONS[self]

    @property
    def content_type(self) -> str:
        """HTTP media type (empty for wrappers and UNKNOWN)."""
        return _CONTENT_TYPES[self]

    @property
    def is_compressed(self) -> bool:
        return self in (DataFormat.GZIP, DataFormat.ZLIB)


_EXTENSIONS = {
    DataFormat.PNG: "png",
    DataFormat.JPG: "jpg",
    DataFormat.WEBP: "webp",
    DataFormat.JSON: "json",
    DataFormat.PBF: "pbf",
    DataFormat.GZIP: "",
    DataFormat.ZLIB: "",
    DataFormat.UNKNOWN: "",
}

_CONTENT_TYPES = {
    DataFormat.PNG: "image/png",
    DataFormat.JPG: "image/jpeg",
    DataFormat.WEBP: "image/webp",
    DataFormat.JSON: "application/json",
    DataFormat.PBF: "application/x-protobuf",
    DataFormat.GZIP: "",
    DataFormat.ZLIB: "",
    DataFormat.UNKNOWN: "",
}


def detect_format(data: bytes) -> DataFormat:
    """
    Classify a payload by its magic number.

    Compression wrappers are checked first, so a gzipped vector tile
    is reported as GZIP rather than PBF.

    Args:
        data: Raw blob (may be empty)

    Returns:
        Detected DataFormat
    """
    data = bytes(data)

    if data.startswith(GZIP_MAGIC):
        return DataFormat.GZIP
    if data.startswith(ZLIB_MAGIC):
        return DataFormat.ZLIB
    if data.startswith(PNG_MAGIC):
        return DataFormat.PNG
    if data.startswith(JPG_MAGIC):
        return DataFormat.JPG
    # RIFF container: 4-byte size field at offset 4 varies per file
    if data[0:4] == RIFF_MAGIC and data[8:12] == WEBP_MAGIC:
        return DataFormat.WEBP
    return DataFormat.UNKNOWN


# =============================================================================
# Codec
# =============================================================================


def decode(data: bytes, data_format: DataFormat) -> str:
    """
    Inflate a gzip or zlib payload into UTF-8 text.

    Args:
        data: Compressed bytes
        data_format: DataFormat.GZIP or DataFormat.ZLIB

    Returns:
        Decompressed text

    Raises:
        UnsupportedFormatError: If data_format is not a compression wrapper
        CorruptDataError: If the stream cannot be inflated or is not UTF-8
    """
    if data_format == DataFormat.GZIP:
        try:
            raw = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise CorruptDataError(f"Invalid gzip stream: {e}") from e
    elif data_format == DataFormat.ZLIB:
        try:
            raw = zlib.decompress(data)
        except zlib.error as e:
            raise CorruptDataError(f"Invalid zlib stream: {e}") from e
    else:
        raise UnsupportedFormatError(data_format)

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptDataError(f"Decoded data is not UTF-8: {e}") from e


def encode(data: bytes) -> bytes:
    """Gzip-compress bytes at the default compression level."""
    return gzip.compress(data)
