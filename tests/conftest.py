"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for the global settings object
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_mirror.db")
os.environ.setdefault("RPC_HTTP_URLS", "https://rpc-1.example.org,https://rpc-2.example.org")
os.environ.setdefault("CONTRACT_ADDRESS", "0xc8ac3954f9550ef41705e9c0ae2179b8df01cf4b")
os.environ.setdefault("GENESIS_BLOCK", "100")
os.environ.setdefault("API_ENABLED", "false")

# Add project root and this directory to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from app.config.database import create_engine, create_schema, create_session_maker  # noqa: E402
from app.config.settings import Settings  # noqa: E402
from app.services.mirror_store import MirrorStore  # noqa: E402
from factories import CONTRACT, GENESIS, FakeChain, LogFactory  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    """Settings with a throwaway SQLite file and tiny delays."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'mirror.db'}",
        contract_address=CONTRACT,
        genesis_block=GENESIS,
        rpc_ws_url=None,
        sync_chunk_size=50,
        sync_min_chunk_size=5,
        sync_poll_interval=0.05,
        sync_backoff_base=0.01,
        sync_backoff_cap=0.02,
        ws_max_reconnect_attempts=2,
        decode_failure_retry_limit=2,
        log_file=None,
    )


@pytest_asyncio.fixture
async def store(settings):
    """Mirror Store on a fresh SQLite database."""
    engine = create_engine(settings)
    await create_schema(engine)
    yield MirrorStore(create_session_maker(engine), settings.contract_address)
    await engine.dispose()


@pytest.fixture
def make_log():
    """Factory for encoded contract logs."""
    return LogFactory()


@pytest.fixture
def chain():
    """Fake chain client with no logs."""
    return FakeChain()
