"""Loguru setup and log helpers."""

import sys

from loguru import logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Replace the default loguru sink with a stderr sink (and optional file sink)."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )


def mask_address(address: str | None) -> str:
    if not address or len(address) < 12:
        return address or ""
    return f"{address[:6]}...{address[-4:]}"
