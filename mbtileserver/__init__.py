"""
mbtileserver

FastAPI-based tile server for MBTiles archives.
"""

__version__ = "0.1.0"

from mbtileserver.config import Settings, get_settings
from mbtileserver.formats import DataFormat, decode, detect_format, encode
from mbtileserver.mbtiles import TileMeta, UTFGrid, get_grid, get_tile, open_archive
from mbtileserver.tilesets import TilesetIndex, discover_tilesets
from mbtileserver.main import create_app

__all__ = [
    "create_app",
    "Settings",
    "get_settings",
    "DataFormat",
    "decode",
    "detect_format",
    "encode",
    "TileMeta",
    "UTFGrid",
    "get_grid",
    "get_tile",
    "open_archive",
    "TilesetIndex",
    "discover_tilesets",
]
