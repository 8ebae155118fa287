"""Builds cache repositories from configuration.

Acts as the composition root: call sites ask for a repository by name and
receive whichever backend the configuration selects. When caching is
disabled they get a NoopCacheRepository, so they never need to branch.
"""

import logging
from typing import Any, Dict, Optional, Type

from tiercache.core.repository import BaseCacheRepository
from tiercache.infrastructure.config.settings import load_repository_options
from tiercache.infrastructure.filesystem.file_system_cache_repository import FileSystemCacheRepository
from tiercache.infrastructure.filesystem.storage_provider import TempDirStorageProvider
from tiercache.infrastructure.memory.memory_cache_repository import MemoryCacheRepository
from tiercache.infrastructure.noop.noop_cache_repository import NoopCacheRepository
from tiercache.infrastructure.tiered.memory_backed_by_file_system_cache_repository import (
    MemoryBackedByFileSystemCacheRepository,
)

BACKENDS: Dict[str, Type[BaseCacheRepository]] = {
    'memory': MemoryCacheRepository,
    'file': FileSystemCacheRepository,
    'tiered': MemoryBackedByFileSystemCacheRepository,
    'noop': NoopCacheRepository,
}

# Backends that accept a storage provider.
_DURABLE_BACKENDS = {'file', 'tiered'}


def create_cache_repository(
    name: str,
    backend: Optional[str] = None,
    *,
    logger: Optional[logging.Logger] = None,
    **overrides: Any,
) -> BaseCacheRepository:
    """Creates the repository called `name`.

    Args:
        name: Repository name; also selects `cache.<name>.*` settings.
        backend: 'memory', 'file', 'tiered' or 'noop'. Defaults to configuration.
        logger: Logger handed to the repository.
        **overrides: Constructor keyword arguments that win over configuration.

    Returns:
        The configured repository.

    Raises:
        ValueError: If the backend name is unknown.
    """
    options = load_repository_options(name)
    selected = (backend or options.backend).strip().lower()
    if not options.enabled:
        logging.getLogger(__name__).info(f"Caching disabled for repository {name}, using no-op backend.")
        selected = 'noop'

    repository_class = BACKENDS.get(selected)
    if repository_class is None:
        raise ValueError(f"Unknown cache backend '{selected}'. Expected one of: {', '.join(sorted(BACKENDS))}")

    kwargs: Dict[str, Any] = {
        'sliding_window_ms': options.sliding_window_ms,
        'absolute_expiration': options.absolute_expiration,
        'auto_sweep_enabled': options.auto_sweep_enabled,
        'sweep_interval_ms': options.sweep_interval_ms,
        'logger': logger,
    }
    if selected in _DURABLE_BACKENDS and options.storage_dir and 'storage_provider' not in overrides:
        kwargs['storage_provider'] = TempDirStorageProvider(options.storage_dir)
    if selected == 'tiered':
        kwargs['durable_ttl_offset_ms'] = options.durable_ttl_offset_ms
    kwargs.update(overrides)
    if selected not in _DURABLE_BACKENDS:
        kwargs.pop('storage_provider', None)
    if selected != 'tiered':
        kwargs.pop('durable_ttl_offset_ms', None)

    logging.getLogger(__name__).debug(f"Creating {repository_class.__name__} for cache repository {name}")
    return repository_class(name, **kwargs)
