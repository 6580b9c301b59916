"""
Logging setup for miniroute.
Console output for debugging plus an optional rotating log file.
"""

import os
import logging
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "miniroute"


def get_log_directory() -> Path:
    """Get or create the logs directory."""
    log_dir = Path.home() / ".miniroute" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_logger(debug: bool = False, level: Optional[str] = None, log_to_file: bool = False) -> logging.Logger:
    """
    Configure the package logger.

    - miniroute.log: rotating file (5MB, 3 backups) when log_to_file is set
    - console: in debug mode or when MINIROUTE_DEBUG is set
    """
    logger = logging.getLogger(LOGGER_NAME)
    if debug:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        handler.flush()
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_to_file:
        file_handler = RotatingFileHandler(
            get_log_directory() / "miniroute.log", maxBytes=5 * 1024 * 1024, backupCount=3  # 5MB
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Console handler for development
    if debug or os.getenv("MINIROUTE_DEBUG"):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
