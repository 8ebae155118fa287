"""Interface for handing out durable storage slots.

File-backed cache items never decide where their data lives; they ask a
StorageProvider for a slot the first time they need one and keep it for the
rest of their lifetime.
"""

import abc
from pathlib import Path

from ..models.common import CacheKey


class StorageProvider(abc.ABC):
    """Abstract Base Class for allocating unique, process-local storage paths."""

    @abc.abstractmethod
    def allocate_slot(self, key: CacheKey) -> Path:
        """Allocates a fresh storage path for an item.

        The returned path must not be shared with any other live item. The
        file itself is not created; the caller writes it on first set.

        Args:
            key: The key of the item requesting the slot (informational only).

        Returns:
            The path the item should use for its data.
        """
        pass
