#!/usr/bin/env python3
"""
Recompute user aggregates from the stored event history.

Resets reward, referral and ascension counters, then replays every event
in chain order. Run while the indexer is stopped.
"""

import asyncio
import sys

from loguru import logger

from app.config.database import create_engine, create_schema, create_session_maker
from app.config.settings import settings
from app.services.mirror_store import MirrorStore
from app.utils.exceptions import PersistenceError

logger.remove()
logger.add(sys.stderr, level="INFO")


async def rebuild() -> int:
    """Run the rebuild; returns a process exit code."""
    engine = create_engine(settings)
    try:
        await create_schema(engine)
        store = MirrorStore(create_session_maker(engine), settings.contract_address)
        result = await store.rebuild_aggregates()
    except PersistenceError as e:
        logger.error(f"Rebuild failed: {e}")
        return 1
    finally:
        await engine.dispose()

    logger.info(f"Replayed {result['events']} events for {result['users']} users")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(rebuild()))
