"""Process-wide logging for the booking core and the sweeper thread.

Lifecycle events are written as ``event | key=value | ...`` lines so a
booking can be followed across reservation, promotion and expiry.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from roombook.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler on first use.

    A later call with an explicit level only adjusts the root level; the
    handler installed by the first call is kept.
    """
    global _configured_level
    resolved_level = (level or get_settings().log_level).upper()

    if _configured_level is None:
        logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
        _configured_level = resolved_level
    elif level is not None and resolved_level != _configured_level:
        logging.getLogger().setLevel(resolved_level)
        _configured_level = resolved_level


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def format_event(event: str, **fields: Any) -> str:
    """Render ``event`` followed by its fields in keyword order."""
    parts = [event]
    parts.extend(f"{key}={value}" for key, value in fields.items())
    return " | ".join(parts)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    if logger.isEnabledFor(level):
        logger.log(level, format_event(event, **fields))
