"""File-backed cache item.

Each item owns one storage slot (a file path) obtained lazily from a
StorageProvider. Values are pickled. Writes go to a temporary sibling file
and are moved into place with `os.replace`, so a reader never sees a
half-written payload. Async I/O uses `aiofiles`.

Read and delete failures are absorbed: they are logged, counted in
`suppressed_errors` and reported as a miss. Write failures raise
CacheWriteError.
"""

import logging
import os
import pickle
from pathlib import Path
from typing import Any, Callable, Optional

import aiofiles
import aiofiles.os

from tiercache.domain.exceptions import CacheWriteError
from tiercache.domain.interfaces.cache_item import CacheItem
from tiercache.domain.interfaces.storage_provider import StorageProvider
from tiercache.domain.models.common import CacheKey, ExpirationTimestamp
from tiercache.domain.models.results import CacheReadResult
from tiercache.infrastructure.filesystem.storage_provider import get_default_storage_provider

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"

# Garbage bytes can make pickle raise almost anything.
_READ_ERRORS = (
    OSError,
    pickle.UnpicklingError,
    EOFError,
    AttributeError,
    ImportError,
    IndexError,
    KeyError,
    TypeError,
    ValueError,
)


class FileSystemCacheItem(CacheItem):
    """Stores one value in its own file."""

    def __init__(
        self,
        key: CacheKey,
        expires_at: ExpirationTimestamp,
        *,
        clock: Optional[Callable[[], int]] = None,
        storage_provider: Optional[StorageProvider] = None,
    ):
        super().__init__(key, expires_at, clock=clock)
        self._storage_provider = storage_provider or get_default_storage_provider()
        self._file_path: Optional[Path] = None
        self.suppressed_errors = 0

    @property
    def file_path(self) -> Path:
        """The item's storage slot, allocated on first access and then reused."""
        if self._file_path is None:
            self._file_path = self._storage_provider.allocate_slot(self.key)
        return self._file_path

    def _temp_path(self) -> Path:
        return self.file_path.with_name(self.file_path.name + TEMP_SUFFIX)

    def _record_suppressed(self, action: str, error: BaseException) -> None:
        self.suppressed_errors += 1
        logger.warning(f"Failed to {action} cache item {self.key} at {self.file_path}: {error}")

    # --- Reads ---

    def read(self) -> CacheReadResult:
        """Reads the stored value, distinguishing a miss from a failure."""
        if self.is_expired():
            return CacheReadResult.miss()
        try:
            data = self.file_path.read_bytes()
            return CacheReadResult.hit(pickle.loads(data))
        except FileNotFoundError:
            return CacheReadResult.miss()
        except _READ_ERRORS as e:
            self._record_suppressed("read", e)
            return CacheReadResult.failure(e)

    async def read_async(self) -> CacheReadResult:
        """Reads the stored value asynchronously, distinguishing a miss from a failure."""
        if self.is_expired():
            return CacheReadResult.miss()
        try:
            async with aiofiles.open(self.file_path, mode='rb') as f:
                data = await f.read()
            return CacheReadResult.hit(pickle.loads(data))
        except FileNotFoundError:
            return CacheReadResult.miss()
        except _READ_ERRORS as e:
            self._record_suppressed("read", e)
            return CacheReadResult.failure(e)

    def get(self) -> Optional[Any]:
        return self.read().value

    async def get_async(self) -> Optional[Any]:
        result = await self.read_async()
        return result.value

    # --- Writes ---

    def _serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CacheWriteError(self.key, f"Cache item {self.key} is not serializable: {e}", e) from e

    def set(self, value: Any) -> None:
        data = self._serialize(value)
        temp_path = self._temp_path()
        try:
            temp_path.write_bytes(data)
            os.replace(temp_path, self.file_path)
            logger.debug(f"Stored cache item {self.key} in {self.file_path}")
        except OSError as e:
            logger.error(f"Failed to write cache item {self.key} to {self.file_path}: {e}")
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise CacheWriteError(self.key, f"Failed to write cache item {self.key}: {e}", e) from e

    async def set_async(self, value: Any) -> None:
        data = self._serialize(value)
        temp_path = self._temp_path()
        try:
            async with aiofiles.open(temp_path, mode='wb') as f:
                await f.write(data)
            await aiofiles.os.replace(temp_path, self.file_path)
            logger.debug(f"Stored cache item {self.key} in {self.file_path}")
        except OSError as e:
            logger.error(f"Failed to write cache item {self.key} to {self.file_path}: {e}")
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise CacheWriteError(self.key, f"Failed to write cache item {self.key}: {e}", e) from e

    # --- Deletes ---

    def delete(self) -> None:
        if self._file_path is None:
            return
        try:
            self.file_path.unlink()
            logger.debug(f"Deleted cache item {self.key} from {self.file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            self._record_suppressed("delete", e)

    async def delete_async(self) -> None:
        if self._file_path is None:
            return
        try:
            await aiofiles.os.remove(self.file_path)
            logger.debug(f"Deleted cache item {self.key} from {self.file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            self._record_suppressed("delete", e)
