"""tiercache: a pluggable key-value cache with interchangeable storage backends.

A single repository engine handles expiration, sweeping and item lifecycle,
while storage is delegated to memory, file-system, no-op or two-tier items.
"""

from tiercache.core.repository import BaseCacheRepository
from tiercache.domain.exceptions import CacheError, CacheWriteError
from tiercache.domain.models.common import NO_EXPIRATION
from tiercache.infrastructure.factory import create_cache_repository
from tiercache.infrastructure.filesystem.file_system_cache_repository import FileSystemCacheRepository
from tiercache.infrastructure.memory.memory_cache_repository import MemoryCacheRepository
from tiercache.infrastructure.noop.noop_cache_repository import NoopCacheRepository
from tiercache.infrastructure.tiered.memory_backed_by_file_system_cache_repository import (
    MemoryBackedByFileSystemCacheRepository,
)

__all__ = [
    'BaseCacheRepository',
    'CacheError',
    'CacheWriteError',
    'FileSystemCacheRepository',
    'MemoryBackedByFileSystemCacheRepository',
    'MemoryCacheRepository',
    'NO_EXPIRATION',
    'NoopCacheRepository',
    'create_cache_repository',
]
