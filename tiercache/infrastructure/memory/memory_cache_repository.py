"""Cache repository that keeps every value in process memory."""

from tiercache.core.repository import BaseCacheRepository
from tiercache.domain.models.common import CacheKey, ExpirationTimestamp
from tiercache.infrastructure.memory.memory_cache_item import MemoryCacheItem


class MemoryCacheRepository(BaseCacheRepository):
    """Repository backed by MemoryCacheItem."""

    def _construct_cache_item(self, key: CacheKey, expires_at: ExpirationTimestamp) -> MemoryCacheItem:
        return MemoryCacheItem(key, expires_at, clock=self._clock)
