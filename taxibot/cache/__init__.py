"""Response cache with TTL expiry and fuzzy key matching."""

from taxibot.cache.matching import find_similar_key
from taxibot.cache.response_cache import CacheStats, ResponseCache

__all__ = ["ResponseCache", "CacheStats", "find_similar_key"]
