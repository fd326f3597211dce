"""
Logging configuration for the MBTiles tile server.

Log lines carry the tile context (tileset id, archive path, tile
coordinate) as trailing ``key=value`` fields, passed through ``extra``.

Usage:
    from mbtileserver.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Indexed tileset", extra={"tileset_id": "a/b/city"})

The level starts from the ``LOG_LEVEL`` environment variable and is
replaced by ``Settings.log_level`` when the app is created.
"""

import logging
import os
import sys
from typing import Dict

# Context fields, printed first and in this order
CONTEXT_KEYS = ("tileset_id", "path", "tile", "code")

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_loggers: Dict[str, logging.Logger] = {}


class TileServerFormatter(logging.Formatter):
    """
    Formatter for tile server logs.

    Appends fields passed via ``extra`` after the message. Known context
    keys come first; values containing whitespace are quoted.
    """

    STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
        "message",
        "asctime",
    }

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        base_message = super().format(record)

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in self.STANDARD_ATTRS and not k.startswith("_")
        }
        if not extra_fields:
            return base_message

        ordered = [k for k in CONTEXT_KEYS if k in extra_fields]
        ordered += sorted(k for k in extra_fields if k not in CONTEXT_KEYS)

        return base_message + " | " + " ".join(
            f"{k}={_format_value(extra_fields[k])}" for k in ordered
        )


def _format_value(value) -> str:
    text = str(value)
    if not text or any(c.isspace() for c in text):
        return repr(text)
    return text


def parse_log_level(level_name: str) -> int:
    """Map a level name (case-insensitive) to its value, INFO if unknown."""
    return LOG_LEVELS.get(level_name.strip().upper(), logging.INFO)


def get_log_level() -> int:
    """Get the initial log level from the LOG_LEVEL environment variable."""
    return parse_log_level(os.environ.get("LOG_LEVEL", "INFO"))


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Each logger gets one stderr handler and does not propagate, so
    repeated calls never duplicate output.

    Args:
        name: Logger name (typically __name__ of the module)
    """
    logger = _loggers.get(name)
    if logger is not None:
        return logger

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(TileServerFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(get_log_level())

    _loggers[name] = logger
    return logger


def set_log_level(level_name: str) -> None:
    """Apply a level to every logger handed out by get_logger."""
    level = parse_log_level(level_name)
    for logger in _loggers.values():
        logger.setLevel(level)
