"""Cache item that discards everything written to it."""

from typing import Any, Optional

from tiercache.domain.interfaces.cache_item import CacheItem


class NoopCacheItem(CacheItem):
    """Stores nothing; every read is a miss."""

    def get(self) -> Optional[Any]:
        return None

    async def get_async(self) -> Optional[Any]:
        return None

    def set(self, value: Any) -> None:
        pass

    async def set_async(self, value: Any) -> None:
        pass

    def delete(self) -> None:
        pass

    async def delete_async(self) -> None:
        pass

    def on_expired(self) -> None:
        pass

    async def on_expired_async(self) -> None:
        pass
