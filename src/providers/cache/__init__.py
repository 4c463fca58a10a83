"""Cache store backends.

MemoryCacheProvider is always available and doubles as the fallback for the
other two.  FileCacheProvider persists entries as local files grouped by
resource type.  RedisCacheProvider shares entries across processes through
an external key-value service.
"""

from src.providers.cache.file_cache import FileCacheProvider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.cache.redis_cache import RedisCacheProvider

__all__ = ["FileCacheProvider", "MemoryCacheProvider", "RedisCacheProvider"]
