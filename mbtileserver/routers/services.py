"""
Tileset service endpoints.

- GET /services                                  list of tilesets
- GET /services/{tileset_id}                     TileJSON-style metadata
- GET /services/{tileset_id}/tiles/{z}/{x}/{y}.{ext}
                                                 tile, or UTFGrid when ext is "json"

Tileset ids may contain "/" (nested directories), so the id is matched
as a path parameter and the tile route is declared first.
"""

import json
import re
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Path, Request, Response
from fastapi.responses import JSONResponse

from mbtileserver.errors import (
    CorruptDataError,
    ErrorCode,
    GridNotFoundError,
    NotAnArchiveError,
    create_error_response,
)
from mbtileserver.formats import DataFormat, detect_format
from mbtileserver.logger import get_logger
from mbtileserver.mbtiles import BLANK_PNG, TileMeta, get_grid, get_tile
from mbtileserver.models import TileMetaResponse, TileSummary, UTFGridResponse
from mbtileserver.tilesets import TilesetIndex

logger = get_logger(__name__)

router = APIRouter(prefix="/services", tags=["services"])

JSONP_CALLBACK_PATTERN = re.compile(r"^[A-Za-z_$][\w.$]*$")

CONTENT_ENCODINGS = {
    DataFormat.GZIP: "gzip",
    DataFormat.ZLIB: "deflate",
}


# ============================================================================
# Utility Functions
# ============================================================================


def xyz_to_tms(z: int, y: int) -> int:
    """Convert an XYZ tile row to the TMS row stored in MBTiles."""
    return (2**z) - y - 1


def get_base_url(request: Request) -> str:
    """Get base URL from request headers."""
    forwarded_proto = request.headers.get("x-forwarded-proto", "http")
    forwarded_host = request.headers.get("x-forwarded-host")

    if forwarded_host:
        return f"{forwarded_proto}://{forwarded_host}"

    return str(request.base_url).rstrip("/")


def get_tileset(request: Request, tileset_id: str) -> TileMeta:
    """Look up an indexed tileset or raise 404."""
    tilesets: TilesetIndex = request.app.state.tilesets
    meta = tilesets.get(tileset_id)
    if meta is None:
        raise HTTPException(
            status_code=404,
            detail=create_error_response(
                f"Tileset not found: {tileset_id}",
                ErrorCode.NOT_FOUND,
                tileset_id=tileset_id,
            ),
        )
    return meta


# ============================================================================
# Endpoints
# ============================================================================


@router.get("", response_model=List[TileSummary])
def list_services(request: Request):
    """List all indexed tilesets."""
    base_url = get_base_url(request)
    tilesets: TilesetIndex = request.app.state.tilesets

    return [
        TileSummary(
            image_type=tilesets[tileset_id].tile_format,
            url=f"{base_url}/services/{tileset_id}",
        )
        for tileset_id in sorted(tilesets)
    ]


@router.get("/{tileset_id:path}/tiles/{z}/{x}/{y}.{ext}")
def get_service_tile(
    request: Request,
    tileset_id: str,
    ext: str,
    z: int = Path(..., ge=0, le=30),
    x: int = Path(..., ge=0),
    y: int = Path(..., ge=0),
    callback: Optional[str] = None,
):
    """
    Get a tile or its UTFGrid.

    Args:
        tileset_id: Tileset id (may contain "/")
        z: Zoom level
        x: X tile coordinate
        y: Y tile coordinate (XYZ scheme)
        ext: Tile format extension, or "json" for the UTFGrid
        callback: Optional JSONP callback name for UTFGrid requests
    """
    meta = get_tileset(request, tileset_id)
    tms_y = xyz_to_tms(z, y)

    if ext == DataFormat.JSON.extension and meta.tile_format != DataFormat.JSON:
        return _grid_response(meta, z, x, tms_y, callback)

    if ext != meta.tile_format.extension:
        raise HTTPException(
            status_code=404,
            detail=create_error_response(
                f"Tileset '{tileset_id}' does not serve .{ext} tiles",
                ErrorCode.NOT_FOUND,
                format=meta.tile_format.value,
            ),
        )

    tile_data = get_tile(meta.path, z, x, tms_y)

    if tile_data == BLANK_PNG:
        return Response(content=tile_data, media_type=DataFormat.PNG.content_type)

    headers = {}
    content_encoding = CONTENT_ENCODINGS.get(detect_format(tile_data))
    if content_encoding:
        headers["Content-Encoding"] = content_encoding

    return Response(
        content=tile_data,
        media_type=meta.tile_format.content_type,
        headers=headers,
    )


@router.get(
    "/{tileset_id:path}",
    response_model=TileMetaResponse,
    response_model_exclude_none=True,
)
def get_service(request: Request, tileset_id: str):
    """Get TileJSON-style metadata for a tileset."""
    meta = get_tileset(request, tileset_id)
    return TileMetaResponse.from_tile_meta(meta, get_base_url(request))


# ============================================================================
# UTFGrid
# ============================================================================


def _grid_response(
    meta: TileMeta,
    z: int,
    x: int,
    y: int,
    callback: Optional[str],
) -> Response:
    if not meta.has_grids:
        raise HTTPException(
            status_code=404,
            detail=create_error_response(
                f"Tileset '{meta.id}' has no UTFGrid data",
                ErrorCode.NOT_FOUND,
            ),
        )

    if callback is not None and not JSONP_CALLBACK_PATTERN.match(callback):
        raise HTTPException(
            status_code=400,
            detail=create_error_response(
                f"Invalid callback name: {callback}",
                ErrorCode.INVALID_PARAMETER,
            ),
        )

    try:
        utfgrid = get_grid(meta.path, z, x, y)
    except GridNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict()) from e
    except (CorruptDataError, NotAnArchiveError) as e:
        logger.warning(
            f"Failed to read UTFGrid: {e.message}",
            extra={"tileset_id": meta.id, "tile": f"{z}/{x}/{y}"},
        )
        raise HTTPException(status_code=500, detail=e.to_dict()) from e

    content = UTFGridResponse.from_utfgrid(utfgrid).model_dump(by_alias=True)

    if callback is None:
        return JSONResponse(content=content)

    return Response(
        content=f"{callback}({json.dumps(content)});",
        media_type="application/javascript",
    )
