"""
Indexer Initialization Module.

This module contains all initialization logic split into focused modules:
- logging: Logger configuration
- services: Engine, chain client, Mirror Store and sync context
- shutdown: Graceful shutdown handler
"""

__all__ = []
