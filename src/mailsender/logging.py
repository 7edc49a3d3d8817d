"""Logging setup for mailsender.

Every module logs through ``logging.getLogger(__name__)`` under the
``mailsender`` namespace. This module adds a ``TRACE`` level below
``DEBUG``, used for SMTP session diagnostics, and :func:`init_logging`,
which attaches a Rich console handler (and optionally a rotating file
handler) to the ``mailsender`` logger.

Configuration keys (``logging`` section of ``mailsender.conf.yml``)::

    logging:
      console:
        enabled: true
        level: INFO
      file:
        enabled: false
        path: mailsender.log
        level: DEBUG
        max_bytes: 1048576
        backup_count: 3

Examples:
    >>> from mailsender.logging import init_logging
    >>> log = init_logging(config={"console": {"level": "TRACE"}})  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import logging.handlers
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

__all__ = [
    "DEFAULT_CONSOLE_LEVEL",
    "DEFAULT_FILE_LEVEL",
    "LOGGER_NAME",
    "TRACE_LEVEL",
    "get_logger",
    "init_logging",
    "parse_level",
]

TRACE_LEVEL = 5
LOGGER_NAME = "mailsender"
DEFAULT_CONSOLE_LEVEL = "INFO"
DEFAULT_FILE_LEVEL = "DEBUG"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

logging.addLevelName(TRACE_LEVEL, "TRACE")

# Handlers installed by the last init_logging() call
_installed_handlers: list[logging.Handler] = []


def parse_level(value: str | int | None, default: str | int = DEFAULT_CONSOLE_LEVEL) -> int:
    """Convert a level name or number into a logging level.

    Examples:
        >>> parse_level("trace")
        5
        >>> parse_level(None, default="WARNING")
        30

    Raises:
        ValueError: If the name is not a known level.
    """
    if value is None:
        value = default
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger or one of its children."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def init_logging(config: Mapping[str, Any] | None = None, *, level: str | int | None = None) -> logging.Logger:
    """Configure the ``mailsender`` logger and return it.

    Handlers installed by a previous call are removed first, so calling
    this function again reconfigures logging instead of duplicating output.

    Args:
        config: The ``logging`` configuration section. When omitted, the
            section is read from the loaded ``mailsender.conf.yml``.
        level: Console level overriding the configuration.

    Returns:
        The configured ``mailsender`` logger.
    """
    if config is None:
        from mailsender.config import get_config

        config = get_config().get("logging") or {}

    logger = logging.getLogger(LOGGER_NAME)
    for handler in _installed_handlers:
        logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    console_cfg: Mapping[str, Any] = config.get("console") or {}
    file_cfg: Mapping[str, Any] = config.get("file") or {}
    levels: list[int] = []

    if console_cfg.get("enabled", True):
        console_level = parse_level(level if level is not None else console_cfg.get("level"))
        handler = RichHandler(
            console=Console(stderr=True),
            level=console_level,
            show_path=bool(console_cfg.get("show_path", False)),
            rich_tracebacks=True,
        )
        _install(logger, handler)
        levels.append(console_level)

    if file_cfg.get("enabled", False):
        file_level = parse_level(file_cfg.get("level"), default=DEFAULT_FILE_LEVEL)
        path = Path(str(file_cfg.get("path", f"{LOGGER_NAME}.log"))).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 3)),
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        _install(logger, file_handler)
        levels.append(file_level)

    logger.setLevel(min(levels) if levels else logging.WARNING)
    logger.propagate = not levels
    return logger


def _install(logger: logging.Logger, handler: logging.Handler) -> None:
    logger.addHandler(handler)
    _installed_handlers.append(handler)
