"""
Health check endpoint.
"""

from fastapi import APIRouter, Request

from mbtileserver import __version__


router = APIRouter(tags=["health"])


@router.get("/api/health")
def health_check(request: Request):
    """Basic health check endpoint."""
    tilesets = request.app.state.tilesets
    return {
        "status": "ok",
        "version": __version__,
        "tilesets": len(tilesets),
        "skipped": len(tilesets.skipped),
    }
