"""
Application logging setup.

Attaches console and optional rotating file handlers to ``app.logger`` and
the ``club_admin`` package logger based on configuration:

    LOG_LEVEL               DEBUG/INFO/WARNING/... (default INFO)
    ENABLE_CONSOLE_LOGGING  stream handler on stderr (default True)
    ENABLE_FILE_LOGGING     size-rotated file under LOG_DIR (default False)
    LOG_DIR                 directory for log files (default <instance>/logs)
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "club_admin.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

_HANDLER_MARKER = "_club_admin_handler"


def _resolve_level(value: object) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _remove_managed_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARKER, True)
    return handler


def setup_logging(app: Flask) -> None:
    """Configure handlers; safe to call repeatedly (tests re-run it after config changes)."""

    level = _resolve_level(app.config.get("LOG_LEVEL", os.environ.get("LOG_LEVEL", "INFO")))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    package_logger = logging.getLogger("club_admin")

    handlers: list[logging.Handler] = []
    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        handlers.append(_mark(logging.StreamHandler()))

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = Path(app.config.get("LOG_DIR") or Path(app.instance_path) / "logs")
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            handlers.append(
                _mark(RotatingFileHandler(log_dir / LOG_FILE_NAME, maxBytes=MAX_LOG_BYTES, backupCount=BACKUP_COUNT))
            )
        except OSError as exc:
            app.logger.warning("File logging disabled; could not open %s: %s", log_dir, exc)

    for logger in (app.logger, package_logger):
        _remove_managed_handlers(logger)
        logger.setLevel(level)
        for handler in handlers:
            handler.setFormatter(formatter)
            handler.setLevel(level)
            logger.addHandler(handler)

    # app.logger already has the handlers; avoid duplicate lines via the root logger.
    package_logger.propagate = False
    app.logger.debug("Logging configured (level=%s, handlers=%s)", logging.getLevelName(level), len(handlers))
