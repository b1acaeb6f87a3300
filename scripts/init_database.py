#!/usr/bin/env python3
"""Initialize Mirror Store tables."""

import asyncio
import sys

from loguru import logger

from app.config.database import create_engine, create_schema
from app.config.settings import settings

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Connecting to database...")
    engine = create_engine(settings)

    logger.info("Creating tables (checkfirst=True)...")
    await create_schema(engine)

    await engine.dispose()
    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
