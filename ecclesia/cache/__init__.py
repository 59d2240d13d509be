"""
Cache module: per-collection snapshots with TTL freshness and optimistic writes.
"""

from ecclesia.cache.manager import CacheEntry, CacheManager, CacheState, CacheStats

__all__ = ["CacheManager", "CacheEntry", "CacheState", "CacheStats"]
