"""
Configuration settings for the MBTiles tile server.

All settings can be overridden with ``MBTILES_``-prefixed environment
variables or a ``.env`` file, e.g. ``MBTILES_DIRECTORY=/srv/tiles``.
List and dict settings are given as JSON, e.g.
``MBTILES_HEADERS='{"Cache-Control": "max-age=3600"}'``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MBTILES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Tiles
    directory: Path = Path("./tiles")

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_hosts: List[str] = ["localhost", "127.0.0.1", "[::1]"]
    headers: Dict[str, str] = {}  # Added to every response

    log_level: str = "INFO"

    @property
    def allows_any_host(self) -> bool:
        """Check if host filtering is disabled."""
        return "*" in self.allowed_hosts


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
