"""
Application constants.

Centralized constants for the application.
"""

# ========================================================================
# CONTRACT CONSTANTS
# ========================================================================

# Referral/rewards contract on Polygon and its deployment block
DEFAULT_CONTRACT_ADDRESS = "0xc8ac3954f9550ef41705e9c0ae2179b8df01cf4b"
DEFAULT_GENESIS_BLOCK = 79584167

# All monetary event fields are 18-decimal token amounts
TOKEN_DECIMALS = 18

# Subject used for contract-level events that reference no user
SYSTEM_SUBJECT = ""

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

RPC_HTTP_TIMEOUT = 30  # RPC provider HTTP timeout
RPC_EXECUTOR_WORKERS = 5  # Threads for synchronous web3 calls
RPC_SWITCH_DELAY = 2.0  # Pause after rotating to the next endpoint

# Error substrings endpoints use when a log query spans too much
RANGE_TOO_LARGE_MARKERS = (
    "block range",
    "range is too large",
    "range too large",
    "too many",
    "limit exceeded",
    "query returned more than",
    "exceed maximum block range",
    "response size exceeded",
)

BLOCK_TIMESTAMP_CACHE_SIZE = 512

# ========================================================================
# SYNC CONSTANTS
# ========================================================================

SYNC_DEFAULT_CHUNK_SIZE = 2000
SYNC_POLL_INTERVAL_SECONDS = 15.0
SYNC_BACKOFF_CAP_SECONDS = 30.0
SYNC_CHUNK_GROWTH_AFTER = 5  # Successful chunks before doubling a shrunk chunk
WS_SUBSCRIBE_TIMEOUT = 10.0

# ========================================================================
# API CONSTANTS
# ========================================================================

API_DEFAULT_USERS_LIMIT = 10
API_DEFAULT_EVENTS_LIMIT = 100
API_MAX_PAGE_LIMIT = 1000
