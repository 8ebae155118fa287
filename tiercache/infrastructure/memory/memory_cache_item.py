"""In-memory cache item: keeps the value as a plain Python reference."""

from typing import Any, Callable, Optional

from tiercache.domain.interfaces.cache_item import CacheItem
from tiercache.domain.models.common import CacheKey, ExpirationTimestamp


class MemoryCacheItem(CacheItem):
    """Holds one value in process memory."""

    def __init__(self, key: CacheKey, expires_at: ExpirationTimestamp, *, clock: Optional[Callable[[], int]] = None):
        super().__init__(key, expires_at, clock=clock)
        self._value: Optional[Any] = None

    def get(self) -> Optional[Any]:
        if self.is_expired():
            return None
        return self._value

    async def get_async(self) -> Optional[Any]:
        return self.get()

    def set(self, value: Any) -> None:
        self._value = value

    async def set_async(self, value: Any) -> None:
        self._value = value

    def delete(self) -> None:
        self._value = None

    async def delete_async(self) -> None:
        self._value = None
