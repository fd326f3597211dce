"""
Pydantic response models for the tile service.

Field names are exposed in lowerCamelCase via aliases.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from mbtileserver.formats import DataFormat
from mbtileserver.mbtiles import TileMeta, UTFGrid


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TileSummary(CamelModel):
    """One entry of the tileset listing."""

    image_type: DataFormat
    url: str


class TileMetaResponse(CamelModel):
    """TileJSON-style description of one tileset."""

    name: Optional[str] = None
    version: Optional[str] = None
    map: str
    tiles: List[str]
    tilejson: str
    scheme: str
    id: str
    format: DataFormat
    grids: Optional[List[str]] = None
    bounds: Optional[List[float]] = None
    minzoom: Optional[int] = None
    maxzoom: Optional[int] = None
    description: Optional[str] = None
    attribution: Optional[str] = None
    legend: Optional[str] = None
    template: Optional[str] = None

    @classmethod
    def from_tile_meta(cls, meta: TileMeta, base_url: str) -> "TileMetaResponse":
        """
        Build the response for a tileset.

        Args:
            meta: Indexed tileset
            base_url: Scheme and host the service is reached at
        """
        service_url = f"{base_url}/services/{meta.id}"
        tile_url = f"{service_url}/tiles/{{z}}/{{x}}/{{y}}"

        # No URL template can match tiles of an unknown format
        tiles = []
        if meta.tile_format.extension:
            tiles = [f"{tile_url}.{meta.tile_format.extension}"]

        grids = None
        if meta.has_grids:
            grids = [f"{tile_url}.json"]

        return cls(
            name=meta.name,
            version=meta.version,
            map=f"{service_url}/map",
            tiles=tiles,
            tilejson=meta.tilejson,
            scheme=meta.scheme,
            id=meta.id,
            format=meta.tile_format,
            grids=grids,
            bounds=list(meta.bounds) if meta.bounds else None,
            minzoom=meta.minzoom,
            maxzoom=meta.maxzoom,
            description=meta.description,
            attribution=meta.attribution,
            legend=meta.legend,
            template=meta.template,
        )


class UTFGridResponse(CamelModel):
    """UTFGrid interactivity payload."""

    data: Dict[str, Any]
    grid: List[str]
    keys: List[str]

    @classmethod
    def from_utfgrid(cls, utfgrid: UTFGrid) -> "UTFGridResponse":
        return cls(data=utfgrid.data, grid=utfgrid.grid, keys=utfgrid.keys)
