"""Exception types raised by cache items and repositories."""

from typing import Optional


class CacheError(Exception):
    """Base class for all tiercache errors."""
    pass


class CacheWriteError(CacheError):
    """Raised when an item fails to persist a value to its storage.

    Write failures are never swallowed: a silent failure would leave callers
    believing the value was cached.
    """

    def __init__(self, key: str, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.key = key
        self.original_error = original_error
