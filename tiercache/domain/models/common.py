"""Defines common Value Objects used across the caching contexts.

These objects represent simple values like cache keys and expiration
timestamps, plus the constants every repository and item agrees on.
"""

import time
from typing import NewType

# === Caching Context ===
CacheKey = NewType("CacheKey", str)                    # Unique key within one repository
ExpirationTimestamp = NewType("ExpirationTimestamp", int)  # Epoch milliseconds, or NO_EXPIRATION
DurationMs = NewType("DurationMs", int)                 # Length of time in milliseconds

# Marks an item that never expires. Valid epoch timestamps are never negative.
NO_EXPIRATION = ExpirationTimestamp(-1)

DEFAULT_SLIDING_WINDOW_MS = DurationMs(60000)
DEFAULT_SWEEP_INTERVAL_MS = DurationMs(60000)

# The durable tier of a two-tier item outlives the memory tier by this much.
DEFAULT_DURABLE_TTL_OFFSET_MS = DurationMs(2000)


def current_time_ms() -> int:
    """Returns the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
