"""
Cache freshness rules for mirrored marketplace orders.
"""

import math
import time
from typing import Optional, Union

CACHE_TTL_MS = 10 * 60 * 1000
CACHE_WARNING_AGE_MS = CACHE_TTL_MS // 2

MS_PER_MINUTE = 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_cache_valid(
    cached_at: Optional[int],
    ttl_ms: int = CACHE_TTL_MS,
    now: Optional[int] = None
) -> bool:
    """True if the cache entry is younger than ttl_ms."""
    if not cached_at:
        return False
    if now is None:
        now = now_ms()
    return now - cached_at < ttl_ms


def cache_age_minutes(cached_at: Optional[int], now: Optional[int] = None) -> Union[int, float]:
    """Whole minutes since cached_at; math.inf if never cached."""
    if not cached_at:
        return math.inf
    if now is None:
        now = now_ms()
    return (now - cached_at) // MS_PER_MINUTE


def cache_warning(
    cached_at: Optional[int],
    ttl_ms: int = CACHE_TTL_MS,
    now: Optional[int] = None
) -> Optional[str]:
    """
    Human-readable warning for aging cache entries.

    Returns None while the entry is younger than half the TTL, a mild
    warning up to the TTL and a stronger one after that.
    """
    if not cached_at:
        return "Order data was never synced"

    age = cache_age_minutes(cached_at, now=now)

    if age >= ttl_ms / MS_PER_MINUTE:
        return f"Data is more than {age} minutes old. Sync to refresh."

    if age >= (ttl_ms / 2) / MS_PER_MINUTE:
        return f"Using cached data from {age} minutes ago."

    return None
