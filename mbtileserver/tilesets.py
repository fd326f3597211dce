"""
Tileset discovery.

Walks a directory tree once at startup and indexes every valid
``.mbtiles`` archive under an id built from its relative path,
e.g. ``<root>/a/b/city.mbtiles`` is served as ``a/b/city``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Tuple

from mbtileserver.errors import TileServerError
from mbtileserver.logger import get_logger
from mbtileserver.mbtiles import TileMeta, open_archive

logger = get_logger(__name__)

MBTILES_SUFFIX = ".mbtiles"


@dataclass(frozen=True)
class SkippedArchive:
    """A file or directory left out of the index, and why."""

    path: Path
    reason: str


class TilesetIndex(Mapping):
    """Read-only mapping of tileset id to TileMeta."""

    def __init__(self, tilesets: Dict[str, TileMeta], skipped: List[SkippedArchive]):
        self._tilesets = MappingProxyType(dict(tilesets))
        self.skipped: Tuple[SkippedArchive, ...] = tuple(skipped)

    def __getitem__(self, tileset_id: str) -> TileMeta:
        return self._tilesets[tileset_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tilesets)

    def __len__(self) -> int:
        return len(self._tilesets)

    def __repr__(self) -> str:
        return f"TilesetIndex({len(self)} tilesets, {len(self.skipped)} skipped)"


def discover_tilesets(root: str | Path) -> TilesetIndex:
    """
    Find and open every MBTiles archive below a directory.

    Subdirectory names become "/"-separated id segments and the file stem
    the last segment. Files that fail to open are recorded in
    ``TilesetIndex.skipped`` and never abort the walk.

    Args:
        root: Directory to scan recursively

    Returns:
        TilesetIndex of all valid archives
    """
    tilesets: Dict[str, TileMeta] = {}
    skipped: List[SkippedArchive] = []

    _walk(Path(root), "", tilesets, skipped)

    logger.info(
        f"Discovered {len(tilesets)} tilesets",
        extra={"root": str(root), "skipped": len(skipped)},
    )
    return TilesetIndex(tilesets, skipped)


def _walk(
    directory: Path,
    prefix: str,
    tilesets: Dict[str, TileMeta],
    skipped: List[SkippedArchive],
) -> None:
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.warning(f"Cannot read directory: {e}", extra={"path": str(directory)})
        skipped.append(SkippedArchive(directory, str(e)))
        return

    for entry in entries:
        if entry.is_dir():
            _walk(entry, f"{prefix}{entry.name}/", tilesets, skipped)
        elif entry.suffix == MBTILES_SUFFIX:
            tileset_id = f"{prefix}{entry.stem}"
            if tileset_id in tilesets:
                logger.warning(
                    "Skipping archive with duplicate tileset id",
                    extra={"path": str(entry), "tileset_id": tileset_id},
                )
                skipped.append(SkippedArchive(entry, f"duplicate tileset id: {tileset_id}"))
                continue

            try:
                tilesets[tileset_id] = open_archive(entry, tileset_id)
            except TileServerError as e:
                logger.warning(
                    f"Skipping archive: {e.message}",
                    extra={"path": str(entry), "code": e.code.value},
                )
                skipped.append(SkippedArchive(entry, e.message))
                continue

            logger.info(
                "Indexed tileset",
                extra={"tileset_id": tileset_id, "format": tilesets[tileset_id].tile_format.value},
            )
