# Persistence backends
from typing import Optional

from .base import PatternStore, StorageError
from .jsonl_store import JsonlPatternStore
from .memory_store import InMemoryPatternStore
from aura_engine.types.config import StorageBackend, StorageConfig


def create_pattern_store(config: Optional[StorageConfig] = None) -> PatternStore:
    """Build the store named by ``config.backend``."""
    config = config or StorageConfig()
    if config.backend == StorageBackend.JSONL:
        return JsonlPatternStore(config.directory)
    return InMemoryPatternStore()


__all__ = [
    "PatternStore",
    "StorageError",
    "JsonlPatternStore",
    "InMemoryPatternStore",
    "create_pattern_store",
]
