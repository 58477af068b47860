"""Logging setup for the erp_payroll logger hierarchy."""

from __future__ import annotations

import logging
import sys
import threading

_LOGGER_PREFIX = "erp_payroll"
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False
_lock = threading.Lock()


def configure_logging(level: str | int = logging.INFO, handler: logging.Handler | None = None) -> None:
    """Configure the erp_payroll logger hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)

    h = handler if handler is not None else logging.StreamHandler(sys.stderr)
    h.setFormatter(logging.Formatter(_FORMAT))
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. For tests only."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
