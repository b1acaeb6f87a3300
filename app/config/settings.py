"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.constants import (
    DEFAULT_CONTRACT_ADDRESS,
    DEFAULT_GENESIS_BLOCK,
    RPC_HTTP_TIMEOUT,
    SYNC_BACKOFF_CAP_SECONDS,
    SYNC_DEFAULT_CHUNK_SIZE,
    SYNC_POLL_INTERVAL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./mirror.db"
    database_echo: bool = False

    # Blockchain RPC Providers
    rpc_http_urls: str = Field(
        default="https://polygon-rpc.com",
        description="Comma-separated ordered list of HTTP JSON-RPC endpoints",
    )
    rpc_ws_url: str | None = Field(
        default=None,
        description="WebSocket endpoint for log subscriptions (push mode)",
    )
    rpc_timeout: int = Field(
        default=RPC_HTTP_TIMEOUT, ge=1, description="HTTP RPC request timeout in seconds"
    )
    rpc_max_retries: int = Field(
        default=3, ge=1, description="Endpoint rotations per call before giving up"
    )
    rpc_poa_chain: bool = Field(
        default=True,
        description="Inject the POA extra-data middleware (Polygon, BSC)",
    )

    # Contract
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    genesis_block: int = Field(
        default=DEFAULT_GENESIS_BLOCK,
        ge=0,
        description="Contract deployment block; sync never starts below it",
    )

    # Sync loop
    sync_chunk_size: int = Field(
        default=SYNC_DEFAULT_CHUNK_SIZE, ge=1, description="Max blocks per eth_getLogs call"
    )
    sync_min_chunk_size: int = Field(
        default=10, ge=1, description="Floor for chunk shrinking on range errors"
    )
    sync_poll_interval: float = Field(
        default=SYNC_POLL_INTERVAL_SECONDS, gt=0, description="Polling interval in seconds"
    )
    sync_confirmations: int = Field(
        default=0, ge=0, description="Blocks to stay behind the chain head"
    )
    sync_backoff_base: float = Field(
        default=1.0, gt=0, description="Base delay for exponential backoff in seconds"
    )
    sync_backoff_cap: float = Field(
        default=SYNC_BACKOFF_CAP_SECONDS, gt=0, description="Backoff ceiling in seconds"
    )
    sync_progress_log_every: int = Field(
        default=10, ge=1, description="Log catch-up progress every N chunks"
    )
    ws_max_reconnect_attempts: int = Field(
        default=5,
        ge=0,
        description="Failed reconnects before falling back to polling for good",
    )
    decode_failure_retry_limit: int = Field(
        default=3,
        ge=0,
        description=(
            "Times a block is retried for an undecodable log before the log "
            "is skipped (0 skips immediately)"
        ),
    )
    sync_packages_on_start: bool = False

    # HTTP API
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=5000, ge=1, le=65535, description="HTTP API port")
    api_prefix: str = "/api"

    # Logging
    log_level: str = "INFO"
    log_file: str | None = "logs/indexer.log"
    log_rotation: str = "1 day"
    log_retention: str = "7 days"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def validate_chunk_bounds(self) -> 'Settings':
        """Keep the chunk floor below the configured chunk size."""
        if self.sync_min_chunk_size > self.sync_chunk_size:
            logger.warning(
                f"SYNC_MIN_CHUNK_SIZE ({self.sync_min_chunk_size}) exceeds "
                f"SYNC_CHUNK_SIZE ({self.sync_chunk_size}); clamping"
            )
            self.sync_min_chunk_size = self.sync_chunk_size
        return self

    @field_validator('contract_address')
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        """Validate contract address format."""
        if not v.startswith('0x') or len(v) != 42:
            raise ValueError(
                f'Invalid contract address: {v}. '
                'Must start with 0x and be 42 characters long.'
            )
        try:
            int(v[2:], 16)
        except ValueError as exc:
            raise ValueError(f'Invalid contract address format: {v}') from exc
        return v.lower()

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// or sqlite+aiosqlite://'
            )
        return v

    @field_validator('api_prefix')
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        """Normalize API prefix to '/name' or empty."""
        v = v.strip().rstrip('/')
        if v and not v.startswith('/'):
            v = f'/{v}'
        return v

    def get_rpc_http_urls(self) -> list[str]:
        """Parse RPC endpoints from comma-separated string, keeping order."""
        result = []
        for url in self.rpc_http_urls.split(","):
            url_stripped = url.strip()
            if not url_stripped:
                continue
            if not url_stripped.startswith(('http://', 'https://')):
                logger.warning(f"Ignoring non-HTTP RPC endpoint: {url_stripped}")
                continue
            if url_stripped not in result:
                result.append(url_stripped)
        return result

    @property
    def push_available(self) -> bool:
        """Whether a websocket endpoint is configured."""
        return bool(self.rpc_ws_url)


# Global settings instance
settings = Settings()
