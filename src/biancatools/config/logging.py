"""Logging setup for the server process.

stdout carries the protocol, so every record goes to stderr.
"""

from __future__ import annotations

import logging
import sys

from .settings import LoggingSettings

ROOT_LOGGER = "biancatools"


def configure_logging(settings: LoggingSettings | None = None) -> logging.Logger:
    """Attach a single stderr handler to the ``biancatools`` logger.

    Idempotent: a handler installed by an earlier call is replaced.
    """
    settings = settings or LoggingSettings()
    log = logging.getLogger(ROOT_LOGGER)
    for handler in [h for h in log.handlers if getattr(h, "_biancatools", False)]:
        log.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(settings.format))
    handler._biancatools = True  # type: ignore[attr-defined]
    log.addHandler(handler)
    log.setLevel(settings.level)
    log.propagate = False
    return log
