"""
Sync Coordinator.

Drives Chain Client -> Event Decoder -> Event Processor -> Mirror Store and
owns the checkpoint.

Key features:
- Resume from the persisted checkpoint after restart
- Catch-up in bounded, self-adjusting chunks
- Push subscription preferred, polling fallback
- Capped exponential backoff; a range is never skipped
"""

from .catch_up_mixin import BatchResult, CatchUpMixin
from .context import SyncContext
from .core import SyncCoordinator
from .live_mixin import LiveMixin

__all__ = [
    "BatchResult",
    "CatchUpMixin",
    "LiveMixin",
    "SyncContext",
    "SyncCoordinator",
]
