"""
HTTP endpoints.

- services: tileset listing, metadata, tiles and UTFGrids
- health: liveness check
"""

from mbtileserver.routers.health import router as health_router
from mbtileserver.routers.services import router as services_router

__all__ = [
    "health_router",
    "services_router",
]
