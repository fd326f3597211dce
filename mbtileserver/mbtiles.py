"""
MBTiles archive access.

Features:
- Schema validation of MBTiles archives (tiles + metadata tables or views)
- Tile and UTFGrid payload format detection by sampling one row
- Metadata extraction into an immutable TileMeta
- Per-coordinate tile lookup with a blank PNG fallback
- Per-coordinate UTFGrid lookup with key data merged in

Every call opens its own read-only connection and closes it before
returning, so archives can be read concurrently without shared state.
"""

import json
import math
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from mbtileserver.errors import (
    CorruptDataError,
    GridNotFoundError,
    MetadataParseError,
    NotAnArchiveError,
    UnsupportedFormatError,
)
from mbtileserver.formats import DataFormat, decode, detect_format
from mbtileserver.logger import get_logger

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_TILEJSON_VERSION = "2.1.0"
DEFAULT_SCHEME = "xyz"

REQUIRED_TABLES = ("tiles", "metadata")
GRID_TABLES = ("grids", "grid_data", "grid_utfgrid", "keymap", "grid_key")

TEXT_METADATA_KEYS = (
    "name",
    "version",
    "description",
    "attribution",
    "legend",
    "template",
)

# 1x1 transparent PNG served for tiles missing from an archive
BLANK_PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x01\x00\x00\x00\x01\x00"
    b"\x01\x03\x00\x00\x00f\xbc:%\x00\x00\x00\x03PLTE\x00\x00\x00\xa7z=\xda"
    b"\x00\x00\x00\x01tRNS\x00@\xe6\xd8f\x00\x00\x00\x1fIDATh\xde\xed\xc1"
    b"\x01\r\x00\x00\x00\xc2 \xfb\xa76\xc77`\x00\x00\x00\x00\x00\x00\x00"
    b"\x00q\x07!\x00\x00\x01\xa7W)\xd7\x00\x00\x00\x00IEND\xaeB`\x82"
)

TILE_SAMPLE_QUERY = "SELECT tile_data FROM tiles LIMIT 1"
GRID_SAMPLE_QUERY = "SELECT grid_utfgrid FROM grid_utfgrid LIMIT 1"
METADATA_QUERY = "SELECT name, value FROM metadata"

TILE_QUERY = """
    SELECT tile_data
    FROM tiles
    WHERE zoom_level = ?
      AND tile_column = ?
      AND tile_row = ?
    LIMIT 1
"""

GRID_QUERY = """
    SELECT grid
    FROM grids
    WHERE zoom_level = ?
      AND tile_column = ?
      AND tile_row = ?
"""

GRID_DATA_QUERY = """
    SELECT key_name, key_json
    FROM grid_data
    WHERE zoom_level = ?
      AND tile_column = ?
      AND tile_row = ?
"""


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class TileMeta:
    """Parsed description of one MBTiles archive."""

    path: Path
    id: str
    tile_format: DataFormat
    name: Optional[str] = None
    version: Optional[str] = None
    tilejson: str = DEFAULT_TILEJSON_VERSION
    scheme: str = DEFAULT_SCHEME
    grid_format: Optional[DataFormat] = None
    bounds: Optional[Tuple[float, float, float, float]] = None
    minzoom: Optional[int] = None
    maxzoom: Optional[int] = None
    description: Optional[str] = None
    attribution: Optional[str] = None
    legend: Optional[str] = None
    template: Optional[str] = None

    @property
    def has_grids(self) -> bool:
        return self.grid_format is not None


@dataclass
class UTFGrid:
    """UTFGrid interactivity data for one tile."""

    data: Dict[str, Any] = field(default_factory=dict)
    grid: List[str] = field(default_factory=list)
    keys: List[str] = field(default_factory=list)


# =============================================================================
# Connection Helpers
# =============================================================================


@contextmanager
def connect_readonly(path: str | Path) -> Iterator[sqlite3.Connection]:
    """Open an archive read-only and always close it on exit."""
    uri = f"{Path(path).resolve().as_uri()}?mode=ro"
    connection = sqlite3.connect(uri, uri=True)
    try:
        yield connection
    finally:
        connection.close()


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _existing_objects(connection: sqlite3.Connection, names: Tuple[str, ...]) -> set:
    """Return which of the given names exist as tables or views."""
    placeholders = ", ".join("?" for _ in names)
    rows = connection.execute(
        f"SELECT name FROM sqlite_master "
        f"WHERE type IN ('table', 'view') AND name IN ({placeholders})",
        names,
    ).fetchall()
    return {row[0] for row in rows}


def _sample_format(connection: sqlite3.Connection, query: str) -> DataFormat:
    """Classify the first stored blob; empty tables give UNKNOWN."""
    row = connection.execute(query).fetchone()
    if row is None:
        return DataFormat.UNKNOWN
    return detect_format(_as_bytes(row[0]))


def _get_grid_format(connection: sqlite3.Connection, path: Path) -> Optional[DataFormat]:
    if len(_existing_objects(connection, GRID_TABLES)) != len(GRID_TABLES):
        return None
    try:
        return _sample_format(connection, GRID_SAMPLE_QUERY)
    except sqlite3.Error as e:
        logger.warning(
            f"Ignoring unreadable UTFGrid tables: {e}",
            extra={"path": str(path)},
        )
        return None


# =============================================================================
# Metadata Parsing
# =============================================================================


def parse_zoom(key: str, value: str) -> int:
    """Parse a minzoom/maxzoom value as a non-negative integer."""
    try:
        zoom = int(value)
    except ValueError as e:
        raise MetadataParseError(key, value) from e
    if zoom < 0:
        raise MetadataParseError(key, value)
    return zoom


def parse_bounds(value: str) -> Tuple[float, float, float, float]:
    """
    Parse a "west,south,east,north" bounds value.

    All four components must be finite numbers; anything else is rejected
    rather than silently dropping components.

    Raises:
        MetadataParseError: If the value does not hold exactly 4 numbers
    """
    parts = value.split(",")
    if len(parts) != 4:
        raise MetadataParseError("bounds", value)
    try:
        west, south, east, north = (float(p) for p in parts)
    except ValueError as e:
        raise MetadataParseError("bounds", value) from e
    if not all(math.isfinite(c) for c in (west, south, east, north)):
        raise MetadataParseError("bounds", value)
    return west, south, east, north


def _metadata_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value if isinstance(value, str) else str(value)


def parse_metadata(rows: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map recognized metadata rows to TileMeta field values.

    Rows with an empty value and unrecognized keys are ignored. Values
    stored as BLOB are decoded as UTF-8.

    Args:
        rows: Raw metadata name -> value mapping

    Returns:
        Dict of TileMeta keyword arguments
    """
    fields: Dict[str, Any] = {}
    for key, value in rows.items():
        if value is None:
            continue
        value = _metadata_text(value)
        if value == "":
            continue

        if key in TEXT_METADATA_KEYS:
            fields[key] = value
        elif key in ("minzoom", "maxzoom"):
            fields[key] = parse_zoom(key, value)
        elif key == "bounds":
            fields[key] = parse_bounds(value)
    return fields


def read_metadata(connection: sqlite3.Connection) -> Dict[str, Any]:
    """Read the raw metadata table of an open archive."""
    return {name: value for name, value in connection.execute(METADATA_QUERY)}


def _fallback_format(metadata: Dict[str, Any]) -> DataFormat:
    """Format named by the metadata "format" row, for unsampled tiles."""
    name = metadata.get("format")
    if name is None:
        return DataFormat.UNKNOWN
    return DataFormat.from_name(_metadata_text(name).strip())


# =============================================================================
# Archive Operations
# =============================================================================


def open_archive(path: str | Path, tileset_id: str) -> TileMeta:
    """
    Validate an MBTiles archive and describe it.

    The tile format comes from a sampled tile. When the sample has no
    recognizable signature (empty table, uncompressed protobuf) the
    metadata "format" row is used instead.

    Args:
        path: Path to the .mbtiles file
        tileset_id: Id the tileset will be served under

    Returns:
        TileMeta for the archive

    Raises:
        NotAnArchiveError: If the file is not a readable MBTiles archive
        MetadataParseError: If minzoom, maxzoom or bounds are malformed
    """
    path = Path(path)

    try:
        with connect_readonly(path) as connection:
            missing = set(REQUIRED_TABLES) - _existing_objects(connection, REQUIRED_TABLES)
            if missing:
                raise NotAnArchiveError(
                    path, f"missing {', '.join(sorted(missing))}"
                )

            tile_format = _sample_format(connection, TILE_SAMPLE_QUERY)
            grid_format = _get_grid_format(connection, path)
            metadata = read_metadata(connection)
    except (sqlite3.Error, OSError) as e:
        raise NotAnArchiveError(path, str(e)) from e

    if tile_format == DataFormat.UNKNOWN:
        tile_format = _fallback_format(metadata)

    # Vector tiles are stored as compressed protobuf
    if tile_format.is_compressed:
        tile_format = DataFormat.PBF

    return TileMeta(
        path=path,
        id=tileset_id,
        tile_format=tile_format,
        grid_format=grid_format,
        **parse_metadata(metadata),
    )


def get_tile(path: str | Path, z: int, x: int, y: int) -> bytes:
    """
    Get a tile from an MBTiles archive.

    Coordinates are matched exactly against the stored
    (zoom_level, tile_column, tile_row). A missing tile or an unreadable
    archive yields BLANK_PNG instead of an error.
    """
    if not Path(path).is_file():
        logger.warning("Serving blank tile for missing archive", extra={"path": str(path)})
        return BLANK_PNG

    try:
        with connect_readonly(path) as connection:
            row = connection.execute(TILE_QUERY, (z, x, y)).fetchone()
    except (sqlite3.Error, OSError) as e:
        logger.warning(
            f"Serving blank tile after read error: {e}",
            extra={"path": str(path), "tile": f"{z}/{x}/{y}"},
        )
        return BLANK_PNG

    if row is None or row[0] is None:
        return BLANK_PNG

    return _as_bytes(row[0])


def get_grid(path: str | Path, z: int, x: int, y: int) -> UTFGrid:
    """
    Get the UTFGrid for one tile.

    The stored grid blob is decompressed and its "grid" and "keys"
    arrays are combined with the per-key JSON rows of grid_data.

    Raises:
        GridNotFoundError: If no grid is stored for the coordinate
        CorruptDataError: If the grid blob or any key value cannot be parsed
        NotAnArchiveError: If the archive cannot be queried
    """
    try:
        with connect_readonly(path) as connection:
            row = connection.execute(GRID_QUERY, (z, x, y)).fetchone()
            if row is None:
                raise GridNotFoundError(z, x, y)

            utfgrid = _parse_grid_blob(_as_bytes(row[0]))

            for key_name, key_json in connection.execute(GRID_DATA_QUERY, (z, x, y)):
                try:
                    utfgrid.data[key_name] = json.loads(key_json)
                except (TypeError, ValueError) as e:
                    raise CorruptDataError(
                        f"Invalid JSON for grid key '{key_name}'",
                        details={"tile": f"{z}/{x}/{y}", "key": key_name},
                    ) from e
    except sqlite3.Error as e:
        raise NotAnArchiveError(path, str(e)) from e

    return utfgrid


def _parse_grid_blob(blob: bytes) -> UTFGrid:
    try:
        grid_json = json.loads(decode(blob, detect_format(blob)))
    except UnsupportedFormatError as e:
        raise CorruptDataError("Grid data is not gzip or zlib compressed") from e
    except ValueError as e:
        raise CorruptDataError(f"Grid data is not valid JSON: {e}") from e

    if not isinstance(grid_json, dict):
        raise CorruptDataError("Grid data must be a JSON object")

    grid = grid_json.get("grid")
    keys = grid_json.get("keys")
    if not isinstance(grid, list) or not isinstance(keys, list):
        raise CorruptDataError("Grid data must contain 'grid' and 'keys' arrays")

    return UTFGrid(grid=grid, keys=keys)
