# SPDX-License-Identifier: GPL-3.0-only
"""Logging configuration shared by every module."""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
)


def get_logger(name: str = None) -> logging.Logger:
    """Return a configured logger.

    Args:
        name: Logger name, usually the calling module's ``__name__``.

    Returns:
        logging.Logger instance.
    """
    return logging.getLogger(name)
