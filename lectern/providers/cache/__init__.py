"""Cache providers.

MemoryCacheProvider keeps reference-data lists (courses, universities) in
process memory with per-entry TTLs.  It is not shared across workers; each
worker invalidates its own copy on writes it performs.
"""

from lectern.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
