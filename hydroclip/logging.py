"""Logging helpers for hydroclip."""

from __future__ import annotations

import logging
from typing import Optional

_LOGGER_CONFIGURED = False

# httpx logs every request at INFO; a single clip can issue hundreds.
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: int = logging.INFO, *, force: bool = False) -> None:
    """Configure root logging once; ``force`` re-applies a new level."""

    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        force=force,
    )
    quiet_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
    _LOGGER_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "hydroclip")


__all__ = ["configure_logging", "get_logger"]
