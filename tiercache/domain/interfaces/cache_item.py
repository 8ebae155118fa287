"""Interface for a single cached value.

Defines the contract every storage backend must honor so the repository
engine can treat memory, file, no-op and two-tier items interchangeably.
"""

import abc
from typing import Any, Callable, Optional

from ..models.common import CacheKey, ExpirationTimestamp, NO_EXPIRATION, current_time_ms


class CacheItem(abc.ABC):
    """Abstract Base Class for one value stored under one key.

    Subclasses must implement get/set/delete in both their synchronous and
    asynchronous forms. Expiration handling is shared.
    """

    def __init__(
        self,
        key: CacheKey,
        expires_at: ExpirationTimestamp,
        *,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initializes the item.

        Args:
            key: The key this item is stored under.
            expires_at: Absolute expiration in epoch milliseconds, or NO_EXPIRATION.
            clock: Returns the current time in epoch milliseconds.
        """
        self.key = key
        self.expires_at = expires_at
        self._clock = clock or current_time_ms

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(key={self.key!r}, expires_at={self.expires_at})"

    def is_expired(self) -> bool:
        """Checks whether the item's deadline has been reached.

        Returns:
            True if the item has an expiration and the current time is at or past it.
        """
        return self.expires_at != NO_EXPIRATION and self._clock() >= self.expires_at

    @abc.abstractmethod
    def get(self) -> Optional[Any]:
        """Returns the stored value, or None if absent or unreadable."""
        pass

    @abc.abstractmethod
    async def get_async(self) -> Optional[Any]:
        """Returns the stored value asynchronously, or None if absent or unreadable."""
        pass

    @abc.abstractmethod
    def set(self, value: Any) -> None:
        """Persists the value.

        Raises:
            CacheWriteError: If the underlying storage rejects the write.
        """
        pass

    @abc.abstractmethod
    async def set_async(self, value: Any) -> None:
        """Persists the value asynchronously.

        Raises:
            CacheWriteError: If the underlying storage rejects the write.
        """
        pass

    @abc.abstractmethod
    def delete(self) -> None:
        """Releases the stored value. Never raises for an already absent value."""
        pass

    @abc.abstractmethod
    async def delete_async(self) -> None:
        """Releases the stored value asynchronously. Never raises for an already absent value."""
        pass

    def on_expired(self) -> None:
        """Called by the repository sweep once the item has expired."""
        self.delete()

    async def on_expired_async(self) -> None:
        """Called by the asynchronous repository sweep once the item has expired."""
        await self.delete_async()
