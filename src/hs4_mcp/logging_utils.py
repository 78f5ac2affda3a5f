"""Logging helpers for the HS4 MCP gateway."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from hs4_mcp.config import load_settings

_logging_configured = False
_logging_lock = threading.Lock()
_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def configure_logging() -> None:
    """Configure logging for the server.

    Everything goes to stderr: in stdio mode stdout carries the MCP protocol.
    """
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # httpx logs full request URLs at INFO, which would include HS4 credentials.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
