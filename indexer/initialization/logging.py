"""
Indexer Initialization - Logging Module.

Module: logging.py
Configures loguru logger for the indexer.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from app.config.settings import Settings


def setup_logging(settings: Settings) -> None:
    """Configure stderr and rotating file sinks."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info("Starting contract event indexer...")
