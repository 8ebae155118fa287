"""Structured results for storage reads.

Durable reads can fail for reasons a caller cannot act on (file vanished,
permission denied, corrupt payload). Items report those failures through
`CacheReadResult` and the public `get` API collapses them into a miss.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CacheReadResult:
    """Outcome of reading one item from its storage."""
    value: Any = None
    found: bool = False
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def hit(cls, value: Any) -> "CacheReadResult":
        return cls(value=value, found=True)

    @classmethod
    def miss(cls) -> "CacheReadResult":
        return cls()

    @classmethod
    def failure(cls, error: BaseException) -> "CacheReadResult":
        return cls(error=error)
