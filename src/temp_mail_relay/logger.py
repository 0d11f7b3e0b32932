# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the temp mail relay.

Handlers, level and format are configured once by the entry points
(``main.py``, :mod:`temp_mail_relay.server` and the CLI) through
:func:`configure_logging`; modules only ask for a named logger.

Example:
    Typical usage in a module::

        from temp_mail_relay.logger import get_logger

        logger = get_logger(__name__)
        logger.info("Relay started")
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "TempMailRelay") -> logging.Logger:
    """Retrieve a logger instance.

    Args:
        name: The logger name. Defaults to "TempMailRelay".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for an entry point.

    Args:
        level: Level name such as ``"DEBUG"``; unknown names fall back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        force=True,  # Force reconfiguration to avoid duplicate handlers
    )
