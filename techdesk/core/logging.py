"""
Shared logging configuration for techdesk.

The terminal is owned by the render driver, so log output goes to files:
``error.log``, ``warning.log`` and ``debug.log`` under the configured log
directory. A console handler is only attached when explicitly enabled.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from .config import LoggingConfig


_CONFIGURED_FLAG = "_techdesk_logging_configured"


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure application-wide logging.

    This function is idempotent: calling it multiple times will not
    re-add handlers if they already exist.
    """

    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger()

    if getattr(root_logger, _CONFIGURED_FLAG, False):
        return

    log_dir = config.log_dir
    os.makedirs(log_dir, exist_ok=True)

    root_logger.setLevel(config.log_level.upper())

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s [%(message)s]",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    for filename, level in (
        ("error.log", logging.ERROR),
        ("warning.log", logging.WARNING),
        ("debug.log", logging.DEBUG),
    ):
        handler = logging.FileHandler(os.path.join(log_dir, filename))
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(config.log_level.upper())
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # requests/urllib3 debug output would drown the vendor-level messages.
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    setattr(root_logger, _CONFIGURED_FLAG, True)


def get_logger(name: str) -> logging.Logger:
    """
    Convenience helper to get a logger for a given module or subsystem.
    """

    return logging.getLogger(name)
