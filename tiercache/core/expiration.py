"""Expiration resolution shared by every cache repository.

Turns per-call overrides and repository defaults into one absolute
expiration timestamp, evaluated once at write time.
"""

from datetime import datetime
from typing import Optional

from tiercache.domain.models.common import ExpirationTimestamp, NO_EXPIRATION


def to_epoch_ms(moment: datetime) -> ExpirationTimestamp:
    """Converts a datetime to epoch milliseconds.

    Naive datetimes are interpreted in local time, as `datetime.timestamp` does.
    """
    return ExpirationTimestamp(int(moment.timestamp() * 1000))


def has_sliding_window(window_ms: Optional[int]) -> bool:
    """A sliding window of None or NO_EXPIRATION means no window is configured."""
    return window_ms is not None and window_ms != NO_EXPIRATION


def resolve_expiration(
    ttl_ms: Optional[int] = None,
    absolute_expiration: Optional[datetime] = None,
    *,
    default_sliding_window_ms: Optional[int],
    default_absolute_expiration: Optional[datetime],
    now_ms: int,
) -> ExpirationTimestamp:
    """Resolves the effective expiration for a write.

    Precedence, highest first: per-call absolute expiration, per-call sliding
    duration, repository absolute expiration, repository sliding window.
    Without any of these the item never expires.

    Args:
        ttl_ms: Per-call sliding duration in milliseconds.
        absolute_expiration: Per-call fixed deadline.
        default_sliding_window_ms: The repository's sliding window.
        default_absolute_expiration: The repository's fixed deadline.
        now_ms: The current time in epoch milliseconds.

    Returns:
        The absolute expiration in epoch milliseconds, or NO_EXPIRATION.
    """
    if absolute_expiration is not None:
        return to_epoch_ms(absolute_expiration)
    if ttl_ms is not None:
        return ExpirationTimestamp(now_ms + ttl_ms)
    if default_absolute_expiration is not None:
        return to_epoch_ms(default_absolute_expiration)
    if has_sliding_window(default_sliding_window_ms):
        return ExpirationTimestamp(now_ms + default_sliding_window_ms)
    return NO_EXPIRATION


def describe_expiration(expires_at: int) -> str:
    """Formats an expiration timestamp for log messages."""
    if expires_at == NO_EXPIRATION:
        return "never"
    return datetime.fromtimestamp(expires_at / 1000).isoformat()
