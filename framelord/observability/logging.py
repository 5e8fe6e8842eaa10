"""Logger factory shared by every FrameLord module."""

from __future__ import annotations

import logging
import os
from typing import Final

_CONFIGURED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that log every outbound request at INFO
_NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore")


def _resolve_level() -> int:
    level_name = os.getenv("FRAMELORD_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the root stream handler is attached once per process."""
    global _CONFIGURED

    level = _resolve_level()
    root = logging.getLogger()

    if not _CONFIGURED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        for noisy in _NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
        _CONFIGURED = True

    root.setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
