"""Repository used to switch caching off without branching at call sites.

Writes are accepted and passed through but never retained, so `get` always
misses and `size` stays at zero.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from tiercache.core.repository import BaseCacheRepository
from tiercache.domain.models.common import (
    CacheKey,
    DEFAULT_SLIDING_WINDOW_MS,
    DEFAULT_SWEEP_INTERVAL_MS,
    ExpirationTimestamp,
)
from tiercache.infrastructure.noop.noop_cache_item import NoopCacheItem


class NoopCacheRepository(BaseCacheRepository):
    """Repository that never holds any item."""

    def __init__(
        self,
        name: str,
        sliding_window_ms: Optional[int] = DEFAULT_SLIDING_WINDOW_MS,
        absolute_expiration: Optional[datetime] = None,
        auto_sweep_enabled: bool = False,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
        logger: Optional[logging.Logger] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
    ):
        # Nothing is ever stored, so there is nothing to sweep.
        super().__init__(
            name,
            sliding_window_ms,
            absolute_expiration,
            False,
            sweep_interval_ms,
            logger,
            clock=clock,
        )

    def _construct_cache_item(self, key: CacheKey, expires_at: ExpirationTimestamp) -> NoopCacheItem:
        return NoopCacheItem(key, expires_at, clock=self._clock)

    def set(
        self,
        key: CacheKey,
        value: Any,
        ttl_ms: Optional[int] = None,
        absolute_expiration: Optional[datetime] = None,
    ) -> Any:
        self._logger.debug(f"Discarding cache item {key} (no-op repository {self.name})")
        self._construct_cache_item(key, self._calculate_expiration(ttl_ms, absolute_expiration)).set(value)
        self._on_set(key, value, ttl_ms)
        return value

    async def set_async(
        self,
        key: CacheKey,
        value: Any,
        ttl_ms: Optional[int] = None,
        absolute_expiration: Optional[datetime] = None,
    ) -> Any:
        self._logger.debug(f"Discarding cache item {key} asynchronously (no-op repository {self.name})")
        await self._construct_cache_item(key, self._calculate_expiration(ttl_ms, absolute_expiration)).set_async(value)
        await self._on_set_async(key, value, ttl_ms)
        return value
