"""The cache repository engine.

Owns the key to item mapping, resolves expirations, sweeps expired items
(inline on every read and periodically on the event loop) and exposes the
public get/set/delete/clear surface. Concrete repositories only decide which
CacheItem variant to build.
"""

import abc
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from tiercache.core.expiration import describe_expiration, has_sliding_window, resolve_expiration
from tiercache.domain.interfaces.cache_item import CacheItem
from tiercache.domain.models.common import (
    CacheKey,
    DEFAULT_SLIDING_WINDOW_MS,
    DEFAULT_SWEEP_INTERVAL_MS,
    ExpirationTimestamp,
    current_time_ms,
)

default_logger = logging.getLogger(__name__)


class BaseCacheRepository(abc.ABC):
    """Policy engine shared by every cache backend.

    Subclasses must implement `_construct_cache_item`. They may override the
    `_on_set`, `_on_delete` and `_on_clear` hooks (and their async forms) to
    observe mutations; the hooks run after the storage change completes.

    The background sweep runs as an asyncio task. It starts immediately when
    the repository is created inside a running event loop, otherwise on the
    first async call, `start_auto_sweep()` or `async with`. Call `close()` or
    `aclose()` (or leave the context manager) to cancel it.
    """

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
    ):
        """Initializes the repository.

        Args:
            name: Identifier used in diagnostics.
            sliding_window_ms: Default lifetime added to the write time. None disables it.
            absolute_expiration: Default fixed deadline; wins over the sliding window.
            auto_sweep_enabled: Whether a background task removes expired items.
            sweep_interval_ms: How often the background sweep runs.
            logger: Logger for debug diagnostics. Defaults to this module's logger.
            clock: Returns the current time in epoch milliseconds.
        """
        self.name = name
        self.sliding_window_ms = sliding_window_ms
        self.absolute_expiration = absolute_expiration
        self.auto_sweep_enabled = auto_sweep_enabled
        self.sweep_interval_ms = sweep_interval_ms
        self._logger = logger if logger is not None else default_logger
        self._clock = clock or current_time_ms
        self._cache_items: Dict[CacheKey, CacheItem] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self._closed = False

        if self.auto_sweep_enabled:
            try:
                self.start_auto_sweep()
            except RuntimeError:
                self._logger.debug(
                    f"No running event loop, auto sweep for cache repository {self.name} "
                    f"will start on the first async call"
                )

        sliding = f"{self.sliding_window_ms}ms" if has_sliding_window(self.sliding_window_ms) else "None"
        absolute = self.absolute_expiration.isoformat() if self.absolute_expiration else "None"
        self._logger.debug(
            f"Created cache repository {self.name} with sliding expiration {sliding} "
            f"and absolute expiration {absolute}"
        )

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, size={self.size})"

    # --- Extension points ---

    @abc.abstractmethod
    def _construct_cache_item(self, key: CacheKey, expires_at: ExpirationTimestamp) -> CacheItem:
        """Builds the backend-specific item for a new key."""
        pass

    def _on_set(self, key: CacheKey, value: Any, ttl_ms: Optional[int]) -> None:
        pass

    async def _on_set_async(self, key: CacheKey, value: Any, ttl_ms: Optional[int]) -> None:
        pass

    def _on_delete(self, key: CacheKey) -> None:
        pass

    async def _on_delete_async(self, key: CacheKey) -> None:
        pass

    def _on_clear(self) -> None:
        pass

    async def _on_clear_async(self) -> None:
        pass

    # --- Internals ---

    def _calculate_expiration(
        self, ttl_ms: Optional[int], absolute_expiration: Optional[datetime]
    ) -> ExpirationTimestamp:
        return resolve_expiration(
            ttl_ms,
            absolute_expiration,
            default_sliding_window_ms=self.sliding_window_ms,
            default_absolute_expiration=self.absolute_expiration,
            now_ms=self._clock(),
        )

    def _get_cache_item(self, key: CacheKey) -> Optional[CacheItem]:
        return self._cache_items.get(key)

    def _ensure_auto_sweep(self) -> None:
        # Restarts the task if the loop that owned it has gone away.
        if not self.auto_sweep_enabled or self._closed:
            return
        if self._sweep_task is None or self._sweep_task.done():
            self.start_auto_sweep()

    async def _auto_sweep_loop(self) -> None:
        interval = max(self.sweep_interval_ms, 0) / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                await self.clear_expired_items_async()
            except Exception as e:
                self._logger.error(f"Auto sweep of cache repository {self.name} failed: {e}", exc_info=True)

    # --- Lifecycle ---

    def start_auto_sweep(self) -> None:
        """Starts the recurring sweep on the running event loop.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        if not self.auto_sweep_enabled or self._closed:
            return
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        loop = asyncio.get_running_loop()
        self._sweep_task = loop.create_task(self._auto_sweep_loop(), name=f"tiercache-sweep-{self.name}")
        self._logger.debug(
            f"Auto clearing expired cache items for cache repository {self.name} every {self.sweep_interval_ms}ms"
        )

    @property
    def auto_sweep_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Cancels the background sweep. Stored items are left untouched."""
        self._closed = True
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
            self._logger.debug(f"Stopped auto sweep for cache repository {self.name}")

    async def aclose(self) -> None:
        """Cancels the background sweep and waits for it to finish."""
        self._closed = True
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.debug(f"Stopped auto sweep for cache repository {self.name}")

    def __enter__(self) -> "BaseCacheRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "BaseCacheRepository":
        self._ensure_auto_sweep()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- Sweep ---

    def clear_expired_items(self) -> int:
        """Removes every expired item.

        Returns:
            The number of items removed.
        """
        self._logger.debug(f"Clearing expired items of cache repository {self.name}...")
        removed = 0
        for key, cache_item in list(self._cache_items.items()):
            if cache_item.is_expired():
                self._logger.debug(f"Cache item {key} has expired, deleting...")
                cache_item.on_expired()
                self._cache_items.pop(key, None)
                removed += 1
        return removed

    async def clear_expired_items_async(self) -> int:
        """Removes every expired item, awaiting each item's release.

        Returns:
            The number of items removed.
        """
        self._logger.debug(f"Clearing expired items of cache repository {self.name} asynchronously...")
        removed = 0
        for key, cache_item in list(self._cache_items.items()):
            # An earlier await may have let another task rewrite or remove this entry.
            if self._cache_items.get(key) is not cache_item or not cache_item.is_expired():
                continue
            self._logger.debug(f"Cache item {key} has expired, deleting...")
            # Unmap before releasing so a concurrent set_async builds a fresh item.
            del self._cache_items[key]
            await cache_item.on_expired_async()
            removed += 1
        return removed

    # --- Public API ---

    def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the value stored under `key`, or None if missing or expired."""
        self._logger.debug(f"Getting cache item {key}...")
        self.clear_expired_items()
        cache_item = self._get_cache_item(key)
        if cache_item is None:
            return None
        return cache_item.get()

    async def get_async(self, key: CacheKey) -> Optional[Any]:
        """Returns the value stored under `key` asynchronously, or None if missing or expired."""
        self._logger.debug(f"Getting cache item {key} asynchronously...")
        self._ensure_auto_sweep()
        await self.clear_expired_items_async()
        cache_item = self._get_cache_item(key)
        if cache_item is None:
            return None
        return await cache_item.get_async()

    def set(
        self,
        key: CacheKey,
        value: Any,
        ttl_ms: Optional[int] = None,
        absolute_expiration: Optional[datetime] = None,
    ) -> Any:
        """Stores `value` under `key`.

        The expiration is recomputed on every call, including updates.

        Args:
            key: The cache key.
            value: The value to store.
            ttl_ms: Lifetime of this value in milliseconds, overriding the defaults.
            absolute_expiration: Fixed deadline for this value, overriding everything else.

        Returns:
            The value, unchanged.

        Raises:
            CacheWriteError: If the backend fails to persist the value.
        """
        self._logger.debug(f"Setting cache item {key}...")
        expires_at = self._calculate_expiration(ttl_ms, absolute_expiration)
        cache_item = self._get_cache_item(key)

        if cache_item is not None:
            self._logger.debug(f"Cache item {key} already exists, updating...")
            cache_item.expires_at = expires_at
            cache_item.set(value)
        else:
            cache_item = self._construct_cache_item(key, expires_at)
            cache_item.set(value)
            self._cache_items[key] = cache_item
            self._logger.debug(f"Created cache item {key} expiring {describe_expiration(expires_at)}")

        self._on_set(key, value, ttl_ms)
        return value

    async def set_async(
        self,
        key: CacheKey,
        value: Any,
        ttl_ms: Optional[int] = None,
        absolute_expiration: Optional[datetime] = None,
    ) -> Any:
        """Stores `value` under `key` asynchronously. See `set`."""
        self._logger.debug(f"Setting cache item {key} asynchronously...")
        self._ensure_auto_sweep()
        expires_at = self._calculate_expiration(ttl_ms, absolute_expiration)
        cache_item = self._get_cache_item(key)

        if cache_item is not None:
            self._logger.debug(f"Cache item {key} already exists, updating...")
            cache_item.expires_at = expires_at
            await cache_item.set_async(value)
        else:
            cache_item = self._construct_cache_item(key, expires_at)
            await cache_item.set_async(value)
            self._cache_items[key] = cache_item
            self._logger.debug(f"Created cache item {key} expiring {describe_expiration(expires_at)}")

        await self._on_set_async(key, value, ttl_ms)
        return value

    def delete(self, key: CacheKey) -> None:
        """Removes `key`. Does nothing if it is not present."""
        self._logger.debug(f"Deleting cache item {key}...")
        cache_item = self._get_cache_item(key)
        if cache_item is None:
            return
        cache_item.delete()
        self._cache_items.pop(key, None)
        self._on_delete(key)

    async def delete_async(self, key: CacheKey) -> None:
        """Removes `key` asynchronously. Does nothing if it is not present."""
        self._logger.debug(f"Deleting cache item {key} asynchronously...")
        self._ensure_auto_sweep()
        cache_item = self._get_cache_item(key)
        if cache_item is None:
            return
        del self._cache_items[key]
        await cache_item.delete_async()
        await self._on_delete_async(key)

    def clear(self) -> None:
        """Releases and removes every item."""
        self._logger.debug(f"Clearing cache repository {self.name}...")
        for key, cache_item in list(self._cache_items.items()):
            cache_item.delete()
            self._cache_items.pop(key, None)
        self._on_clear()

    async def clear_async(self) -> None:
        """Releases and removes every item asynchronously."""
        self._logger.debug(f"Clearing cache repository {self.name} asynchronously...")
        self._ensure_auto_sweep()
        for key, cache_item in list(self._cache_items.items()):
            if self._cache_items.get(key) is not cache_item:
                continue
            del self._cache_items[key]
            await cache_item.delete_async()
        await self._on_clear_async()

    # --- Introspection ---

    @property
    def size(self) -> int:
        return len(self._cache_items)

    def __len__(self) -> int:
        return len(self._cache_items)

    def __contains__(self, key: object) -> bool:
        return key in self._cache_items

    def keys(self) -> List[CacheKey]:
        return list(self._cache_items)

    def snapshot(self) -> Dict[CacheKey, Any]:
        """Returns a key to value mapping of every held item without sweeping."""
        return {key: cache_item.get() for key, cache_item in list(self._cache_items.items())}

    async def snapshot_async(self) -> Dict[CacheKey, Any]:
        """Returns a key to value mapping of every held item without sweeping."""
        snapshot: Dict[CacheKey, Any] = {}
        for key, cache_item in list(self._cache_items.items()):
            snapshot[key] = await cache_item.get_async()
        return snapshot
