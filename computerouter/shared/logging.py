"""
ComputeRouter — Shared Logging Configuration

Centralized logging setup for all ComputeRouter components.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .settings import LOG_LEVEL, get_logs_dir


# =============================================================================
# Log Format
# =============================================================================
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


# =============================================================================
# Logger Factory
# =============================================================================
def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger for a component.

    Args:
        name: Logger name (typically one of the component names below)
        level: Optional log level override

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger with the shared format."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )


def configure_file_logging(
    logger: logging.Logger,
    filename: str,
    max_bytes: int = 10_000_000,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Add file logging to a logger with rotation.

    Args:
        logger: Logger to configure
        filename: Name of the log file (will be in LOG_DIR)
        max_bytes: Maximum file size before rotation
        backup_count: Number of backup files to keep
    """
    file_handler = RotatingFileHandler(
        get_logs_dir() / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)


# =============================================================================
# Component Loggers
# =============================================================================
ROOT_LOGGER = "computerouter"
SCHEDULER_LOGGER = "computerouter.scheduler"
CATALOG_LOGGER = "computerouter.catalog"
ORCHESTRATOR_LOGGER = "computerouter.core.orchestrator"
API_LOGGER = "computerouter.api"
