"""
Cache package for the AppData service.

Provides the CacheGateway used to keep a copy of each user's AppFolder
document in a shared cache, and a Redis-backed implementation of the
narrow backend interface it consumes. The cache is never authoritative:
anything in it can be rebuilt from the remote document store.
"""

from .gateway import CacheBackend, CacheGateway, app_folder_cache_key
from .redis_cache import RedisCacheBackend

__all__ = [
    "CacheBackend",
    "CacheGateway",
    "RedisCacheBackend",
    "app_folder_cache_key",
]
