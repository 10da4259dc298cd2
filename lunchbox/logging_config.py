from __future__ import annotations

import logging
import os

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_PREVIEW_CHARS = 200


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the ``lunchbox`` logger."""
    root = logging.getLogger("lunchbox")
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)


def preview(text: str | None, limit: int = _PREVIEW_CHARS) -> str:
    """Truncate prompt text before it is written to a log line."""
    if not text:
        return ""
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."
