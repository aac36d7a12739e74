"""Logging setup for the gallery server.

Idempotent: calling configure_logging() multiple times won't duplicate handlers.
"""

from __future__ import annotations

import logging
import sys
from typing import Union

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Union[str, int, None] = None) -> None:
    """Attach a stdout handler to the root logger once and set its level."""
    if level is None:
        from gallery.config import config

        level = config.LOG_LEVEL
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    if root.handlers:  # Prevent double configuration under reload / tests
        root.setLevel(level)
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)


def mask_token(value: str) -> str:
    """Mask a token for safe logging: show only the first 6 chars."""
    if not value or len(value) < 8:
        return "***"
    return f"{value[:6]}***"
