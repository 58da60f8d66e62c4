"""Storage adapters for swrcache."""

from swrcache.adapters.base import CacheAdapter
from swrcache.adapters.memory import MemoryAdapter

__all__ = [
    "CacheAdapter",
    "MemoryAdapter",
]
