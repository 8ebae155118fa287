"""Concrete StorageProvider that allocates slots in a local directory.

Uses `tempfile` to locate the platform temp directory when no directory is
configured, and random file names so slots never collide within a process.
"""

import logging
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Union

from tiercache.domain.interfaces.storage_provider import StorageProvider
from tiercache.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_SLOT_SUFFIX = ".tiercache-item"


class TempDirStorageProvider(StorageProvider):
    """Hands out unique file paths inside one directory."""

    def __init__(self, directory: Optional[Union[str, Path]] = None, suffix: str = DEFAULT_SLOT_SUFFIX):
        """Initializes the provider.

        Args:
            directory: Where slots live. Defaults to the platform temp directory.
            suffix: File name suffix for every slot.
        """
        self.directory = Path(directory) if directory is not None else Path(tempfile.gettempdir())
        self.suffix = suffix
        self._setup_directory()
        logger.debug(f"TempDirStorageProvider initialized at {self.directory}")

    def _setup_directory(self) -> None:
        """Creates the slot directory if it doesn't exist."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create cache storage directory {self.directory}: {e}")
            raise

    def allocate_slot(self, key: CacheKey) -> Path:
        """Returns a fresh, randomly named path in the slot directory."""
        slot = self.directory / f"{uuid.uuid4().hex}{self.suffix}"
        logger.debug(f"Allocated storage slot {slot.name} for cache item {key}")
        return slot


_default_provider: Optional[TempDirStorageProvider] = None


def get_default_storage_provider() -> TempDirStorageProvider:
    """Returns the process-wide provider rooted at the platform temp directory."""
    global _default_provider
    if _default_provider is None:
        _default_provider = TempDirStorageProvider()
    return _default_provider
