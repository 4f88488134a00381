"""Logging setup shared by the library modules and the CLI."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .config import LOGGING_CONFIG

ROOT_LOGGER_NAME = "satndvi"


def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Configure and return the package logger.

    Parameters
    ----------
    log_level : str, optional
        Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        Defaults to ``LOGGING_CONFIG["level"]``.
    log_file : str, optional
        Also write records to this file.

    Returns
    -------
    logging.Logger
        The ``satndvi`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    level = log_level or LOGGING_CONFIG.get("level", "INFO")
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    logger.setLevel(numeric_level)

    # Handlers are only attached on the first call
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOGGING_CONFIG["log_format"])

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized at level: {level}")
    return logger


def get_module_logger(module_name: str) -> logging.Logger:
    """Return a child of the package logger for ``module_name``."""
    if module_name.startswith(ROOT_LOGGER_NAME + "."):
        module_name = module_name[len(ROOT_LOGGER_NAME) + 1:]
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")
