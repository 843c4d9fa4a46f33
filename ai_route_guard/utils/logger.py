"""
Logging setup for AI Route Guard.

All package loggers hang off the ``ai_route_guard`` parent logger so a single
``configure_logging`` call controls level and handlers for the whole engine.
"""

import logging
import logging.handlers
import sys
from typing import Any, Dict, Optional

PARENT_LOGGER = "ai_route_guard"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_FILE_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def configure_logging(config: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """Configure the package parent logger.

    Args:
        config: Logging settings. Recognized keys: ``level``, ``format``,
            ``date_format``, ``enable_console``, ``file_path``

    Returns:
        The configured parent logger
    """
    config = config or {}

    parent = logging.getLogger(PARENT_LOGGER)
    # Clear existing handlers to avoid duplicates
    parent.handlers.clear()

    level_name = str(config.get("level", "INFO")).upper()
    parent.setLevel(getattr(logging, level_name, logging.INFO))

    formatter = logging.Formatter(
        config.get("format", DEFAULT_FORMAT),
        config.get("date_format", DEFAULT_DATE_FORMAT),
    )

    if config.get("enable_console", True):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        parent.addHandler(console_handler)

    file_path = config.get("file_path")
    if file_path:
        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=MAX_FILE_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        parent.addHandler(file_handler)

    parent.propagate = False
    return parent


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package parent logger.

    Module names already inside the package (``ai_route_guard.core.cache``)
    are used as-is; anything else is prefixed.
    """
    if name == PARENT_LOGGER or name.startswith(PARENT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PARENT_LOGGER}.{name}")
