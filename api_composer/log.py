from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def setup_logging(level: Optional[str] = None) -> None:
    """Install a console handler on the package logger.

    Safe to call more than once; the handler is only added the first time.
    """
    if level is None:
        from .settings import get_settings
        level = get_settings().log_level

    root = logging.getLogger("api_composer")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(getattr(h, "_api_composer", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._api_composer = True
        root.addHandler(handler)
