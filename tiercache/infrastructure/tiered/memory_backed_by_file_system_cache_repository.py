"""Cache repository whose items live in memory with a file-system fallback."""

import logging
from datetime import datetime
from typing import Callable, Optional

from tiercache.core.repository import BaseCacheRepository
from tiercache.domain.interfaces.storage_provider import StorageProvider
from tiercache.domain.models.common import (
    CacheKey,
    DEFAULT_DURABLE_TTL_OFFSET_MS,
    DEFAULT_SLIDING_WINDOW_MS,
    DEFAULT_SWEEP_INTERVAL_MS,
    ExpirationTimestamp,
)
from tiercache.infrastructure.filesystem.storage_provider import get_default_storage_provider
from tiercache.infrastructure.tiered.memory_backed_by_file_system_cache_item import (
    MemoryBackedByFileSystemCacheItem,
)


class MemoryBackedByFileSystemCacheRepository(BaseCacheRepository):
    """Repository backed by MemoryBackedByFileSystemCacheItem."""

    def __init__(
        self,
        name: str,
        sliding_window_ms: Optional[int] = DEFAULT_SLIDING_WINDOW_MS,
        absolute_expiration: Optional[datetime] = None,
        auto_sweep_enabled: bool = True,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
        logger: Optional[logging.Logger] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        storage_provider: Optional[StorageProvider] = None,
        durable_ttl_offset_ms: int = DEFAULT_DURABLE_TTL_OFFSET_MS,
    ):
        self.storage_provider = storage_provider or get_default_storage_provider()
        self.durable_ttl_offset_ms = durable_ttl_offset_ms
        super().__init__(
            name,
            sliding_window_ms,
            absolute_expiration,
            auto_sweep_enabled,
            sweep_interval_ms,
            logger,
            clock=clock,
        )

    def _construct_cache_item(
        self, key: CacheKey, expires_at: ExpirationTimestamp
    ) -> MemoryBackedByFileSystemCacheItem:
        return MemoryBackedByFileSystemCacheItem(
            key,
            expires_at,
            clock=self._clock,
            storage_provider=self.storage_provider,
            durable_ttl_offset_ms=self.durable_ttl_offset_ms,
        )
