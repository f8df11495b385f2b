# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Logging setup for closurecal.

Library modules only ever call ``logging.getLogger(__name__)``; applications
and scripts call :func:`configure_logging` once to attach handlers to the
``closurecal`` logger.
"""

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s'
PACKAGE_LOGGER = 'closurecal'


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Attach console (and optionally file) handlers to the package logger.

    Calling this more than once replaces the handlers installed by the
    previous call instead of stacking duplicates.

    Args:
        level: Logging level name or number.
        log_file: Optional path of a log file to write alongside the console.

    Returns:
        The configured ``closurecal`` logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, '_closurecal_handler', False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console._closurecal_handler = True
    logger.addHandler(console)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        file_handler._closurecal_handler = True
        logger.addHandler(file_handler)

    return logger
