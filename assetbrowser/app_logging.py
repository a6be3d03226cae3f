"""Logging helpers for the asset browser."""

from __future__ import annotations

import logging
from typing import Optional

ROOT_LOGGER_NAME = "assetbrowser"

_LOGGER: Optional[logging.Logger] = None


def _root_logger() -> logging.Logger:
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = logging.getLogger(ROOT_LOGGER_NAME)
        if not _LOGGER.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            handler.setFormatter(formatter)
            _LOGGER.addHandler(handler)
        _LOGGER.setLevel(logging.INFO)
    return _LOGGER


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it for ``name``."""

    root = _root_logger()
    if not name or name == ROOT_LOGGER_NAME:
        return root
    if name.startswith(ROOT_LOGGER_NAME + "."):
        name = name[len(ROOT_LOGGER_NAME) + 1:]
    return root.getChild(name)
