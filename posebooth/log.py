"""Shared logging helper for the posebooth package."""

from __future__ import annotations

import logging
from typing import Optional, Union

_DEFAULT_FMT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"


def get_logger(
    name: str = "posebooth",
    level: Optional[Union[str, int]] = None,
    fmt: str = _DEFAULT_FMT,
    datefmt: str = _DEFAULT_DATEFMT,
) -> logging.Logger:
    """
    Create/reuse a logger with a single stream handler.
    Usage:
        log = get_logger("posebooth.capture")
        log.info("countdown started")

    ``level`` is only applied when given, so module-level loggers inherit
    whatever the application configured through ``set_level``.
    """
    log = logging.getLogger(name)

    if level is not None:
        log.setLevel(_normalize_level(level))

    root = logging.getLogger("posebooth")
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        root.addHandler(sh)
        if root.level == logging.NOTSET:
            root.setLevel(logging.INFO)

    return log


def set_level(level: Union[str, int]) -> None:
    """Set the level for every posebooth logger at once."""
    get_logger("posebooth").setLevel(_normalize_level(level))


def _normalize_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)
