"""
Pytest configuration and fixtures for mbtileserver tests.

This module provides:
- Path configuration for imports
- Helpers that write real MBTiles (sqlite) archives
- Sample payloads for each detected format
"""

import gzip
import json
import os
import sqlite3
import sys
import zlib
from pathlib import Path
from typing import Dict, Optional

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# Sample Payloads
# ============================================================================

PNG_TILE = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPG_TILE = b"\xff\xd8\xff\xe0" + b"\x00" * 16
WEBP_TILE = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 16
PBF_TILE = b"\x1a\x03MVT\x00\x00\x00\x00\x00"
GZIP_PBF_TILE = gzip.compress(PBF_TILE)

SAMPLE_GRID = {
    "grid": ["  !!", " !!#", "##  "],
    "keys": ["", "1", "2"],
}

SAMPLE_GRID_DATA = {
    "1": {"name": "Tokyo Tower", "height": 333},
    "2": {"name": "Skytree", "height": 634},
}


# ============================================================================
# Archive Builders
# ============================================================================

def make_mbtiles(
    path: Path,
    tiles: Optional[Dict[tuple, bytes]] = None,
    metadata: Optional[Dict[str, str]] = None,
    with_metadata_table: bool = True,
) -> Path:
    """
    Write a minimal MBTiles archive.

    Args:
        path: Output file
        tiles: {(z, x, y): tile_data} with y as stored (TMS) row
        metadata: metadata name -> value rows
        with_metadata_table: Set False to build an invalid archive
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        conn.execute(
            "CREATE TABLE tiles (zoom_level INTEGER, tile_column INTEGER, "
            "tile_row INTEGER, tile_data BLOB)"
        )
        for (z, x, y), data in (tiles or {}).items():
            conn.execute("INSERT INTO tiles VALUES (?, ?, ?, ?)", (z, x, y, data))

        if with_metadata_table:
            conn.execute("CREATE TABLE metadata (name TEXT, value TEXT)")
            for name, value in (metadata or {}).items():
                conn.execute("INSERT INTO metadata VALUES (?, ?)", (name, value))
    conn.close()
    return path


def add_grids(
    path: Path,
    grids: Dict[tuple, bytes],
    grid_data: Optional[Dict[tuple, Dict[str, str]]] = None,
) -> Path:
    """
    Add the five UTFGrid tables to an archive.

    Args:
        grids: {(z, x, y): compressed grid blob}
        grid_data: {(z, x, y): {key_name: key_json}}
    """
    with sqlite3.connect(path) as conn:
        conn.execute(
            "CREATE TABLE grid_utfgrid (grid_id TEXT, grid_utfgrid BLOB)"
        )
        conn.execute("CREATE TABLE keymap (key_name TEXT, key_json TEXT)")
        conn.execute("CREATE TABLE grid_key (grid_id TEXT, key_name TEXT)")
        conn.execute(
            "CREATE TABLE grids (zoom_level INTEGER, tile_column INTEGER, "
            "tile_row INTEGER, grid BLOB)"
        )
        conn.execute(
            "CREATE TABLE grid_data (zoom_level INTEGER, tile_column INTEGER, "
            "tile_row INTEGER, key_name TEXT, key_json TEXT)"
        )
        for (z, x, y), blob in grids.items():
            conn.execute("INSERT INTO grids VALUES (?, ?, ?, ?)", (z, x, y, blob))
            conn.execute(
                "INSERT INTO grid_utfgrid VALUES (?, ?)", (f"{z}/{x}/{y}", blob)
            )
        for (z, x, y), keys in (grid_data or {}).items():
            for key_name, key_json in keys.items():
                conn.execute(
                    "INSERT INTO grid_data VALUES (?, ?, ?, ?, ?)",
                    (z, x, y, key_name, key_json),
                )
    conn.close()
    return path


def gzip_json(value) -> bytes:
    return gzip.compress(json.dumps(value).encode("utf-8"))


def zlib_json(value) -> bytes:
    return zlib.compress(json.dumps(value).encode("utf-8"))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def png_archive(tmp_path):
    """PNG archive with full metadata and one tile at 1/0/0."""
    return make_mbtiles(
        tmp_path / "city.mbtiles",
        tiles={(1, 0, 0): PNG_TILE},
        metadata={
            "name": "City",
            "version": "1.0.0",
            "bounds": "-10,20,30,40.5",
            "minzoom": "0",
            "maxzoom": "4",
            "description": "City basemap",
            "attribution": "© contributors",
            "format": "png",
            "center": "10,30,2",
            "legend": "",
        },
    )


@pytest.fixture
def vector_archive(tmp_path):
    """Gzipped PBF archive with one tile at 0/0/0."""
    return make_mbtiles(
        tmp_path / "roads.mbtiles",
        tiles={(0, 0, 0): GZIP_PBF_TILE},
        metadata={"name": "Roads", "format": "pbf"},
    )


@pytest.fixture
def grid_archive(tmp_path):
    """PNG archive with a gzipped UTFGrid and key data at 1/0/0."""
    path = make_mbtiles(
        tmp_path / "interactive.mbtiles",
        tiles={(1, 0, 0): PNG_TILE},
        metadata={"name": "Interactive"},
    )
    return add_grids(
        path,
        grids={(1, 0, 0): gzip_json(SAMPLE_GRID)},
        grid_data={
            (1, 0, 0): {k: json.dumps(v) for k, v in SAMPLE_GRID_DATA.items()},
        },
    )


@pytest.fixture
def tiles_root(tmp_path):
    """
    Directory tree of archives:

        root/
            city.mbtiles          valid png
            broken.mbtiles        not sqlite
            notes.txt             ignored
            a/b/city.mbtiles      valid png with grids
            vector/roads.mbtiles  valid gzipped pbf
            upper.MBTILES         ignored (suffix is case sensitive)
    """
    root = tmp_path / "tiles"
    make_mbtiles(root / "city.mbtiles", tiles={(0, 0, 0): PNG_TILE})
    (root / "broken.mbtiles").write_bytes(b"this is not an sqlite database")
    (root / "notes.txt").write_text("not a tileset")
    nested = make_mbtiles(
        root / "a" / "b" / "city.mbtiles",
        tiles={(1, 0, 0): PNG_TILE},
        metadata={"name": "Nested city"},
    )
    add_grids(
        nested,
        grids={(1, 0, 0): gzip_json(SAMPLE_GRID)},
        grid_data={(1, 0, 0): {"1": json.dumps(SAMPLE_GRID_DATA["1"])}},
    )
    make_mbtiles(
        root / "vector" / "roads.mbtiles",
        tiles={(0, 0, 0): GZIP_PBF_TILE},
    )
    make_mbtiles(root / "upper.MBTILES", tiles={(0, 0, 0): PNG_TILE})
    return root
