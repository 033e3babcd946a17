"""Logging setup for the `hrit_assistant` logger tree."""

from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_configured = False


def _level_from_env() -> int:
    level_name = os.getenv("HRIT_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(level: int | str | None = None) -> logging.Logger:
    """Attach a single stdout handler to the package logger.

    Safe to call repeatedly; only the level is updated after the first call.
    Modules log through `logging.getLogger(__name__)` and inherit this setup.
    """

    global _configured
    root = logging.getLogger("hrit_assistant")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(level if level is not None else _level_from_env())

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        _configured = True
    return root
