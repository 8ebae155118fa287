"""Two-tier cache item: a fast memory tier in front of a durable file tier.

Writes fan out to memory first and then to the file. Reads try memory and
fall back to the file only on a miss. Deletes hit both tiers. The file tier
is given a longer lifetime (`durable_ttl_offset_ms`) so that a memory miss
near the deadline still finds the durable copy instead of missing both.

There is no atomicity across tiers: if the file write fails after the memory
write succeeded, the tiers disagree until the next delete or expiry.
"""

import logging
from typing import Any, Callable, Optional

from tiercache.domain.interfaces.cache_item import CacheItem
from tiercache.domain.interfaces.storage_provider import StorageProvider
from tiercache.domain.models.common import (
    CacheKey,
    DEFAULT_DURABLE_TTL_OFFSET_MS,
    ExpirationTimestamp,
    NO_EXPIRATION,
)
from tiercache.infrastructure.filesystem.file_system_cache_item import FileSystemCacheItem
from tiercache.infrastructure.memory.memory_cache_item import MemoryCacheItem

logger = logging.getLogger(__name__)


def durable_expiration(expires_at: int, offset_ms: int) -> ExpirationTimestamp:
    """Returns the file tier's deadline for a given memory tier deadline."""
    if expires_at == NO_EXPIRATION:
        return NO_EXPIRATION
    return ExpirationTimestamp(expires_at + offset_ms)


class MemoryBackedByFileSystemCacheItem(CacheItem):
    """Composite item owning one MemoryCacheItem and one FileSystemCacheItem."""

    def __init__(
        self,
        key: CacheKey,
        expires_at: ExpirationTimestamp,
        *,
        clock: Optional[Callable[[], int]] = None,
        storage_provider: Optional[StorageProvider] = None,
        durable_ttl_offset_ms: int = DEFAULT_DURABLE_TTL_OFFSET_MS,
    ):
        self.durable_ttl_offset_ms = durable_ttl_offset_ms
        self.memory_item = MemoryCacheItem(key, expires_at, clock=clock)
        self.file_item = FileSystemCacheItem(
            key,
            durable_expiration(expires_at, durable_ttl_offset_ms),
            clock=clock,
            storage_provider=storage_provider,
        )
        super().__init__(key, expires_at, clock=clock)

    @property
    def expires_at(self) -> ExpirationTimestamp:
        return self._expires_at

    @expires_at.setter
    def expires_at(self, value: ExpirationTimestamp) -> None:
        # Keeps both tiers in step when the repository recomputes the deadline.
        self._expires_at = value
        self.memory_item.expires_at = value
        self.file_item.expires_at = durable_expiration(value, self.durable_ttl_offset_ms)

    def get(self) -> Optional[Any]:
        value = self.memory_item.get()
        if value is not None:
            return value
        logger.debug(f"Memory tier miss for cache item {self.key}, falling back to file tier")
        return self.file_item.get()

    async def get_async(self) -> Optional[Any]:
        value = await self.memory_item.get_async()
        if value is not None:
            return value
        logger.debug(f"Memory tier miss for cache item {self.key}, falling back to file tier")
        return await self.file_item.get_async()

    def set(self, value: Any) -> None:
        self.memory_item.set(value)
        self.file_item.set(value)

    async def set_async(self, value: Any) -> None:
        await self.memory_item.set_async(value)
        await self.file_item.set_async(value)

    def delete(self) -> None:
        self.memory_item.delete()
        self.file_item.delete()

    async def delete_async(self) -> None:
        await self.memory_item.delete_async()
        await self.file_item.delete_async()
