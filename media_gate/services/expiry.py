"""Credential lifetime bounds shared by every signer."""

from __future__ import annotations

import time
from typing import Callable, Optional

__all__ = [
    "Clock",
    "DEFAULT_URL_EXPIRATION",
    "MAX_URL_EXPIRATION",
    "MIN_URL_EXPIRATION",
    "clamp_expiry",
    "now_s",
]

MIN_URL_EXPIRATION = 60
MAX_URL_EXPIRATION = 60 * 60
DEFAULT_URL_EXPIRATION = 30 * 60

Clock = Callable[[], int]


def now_s() -> int:
    """Return the current unix timestamp in seconds."""

    return int(time.time())


def clamp_expiry(requested: Optional[int]) -> int:
    """Resolve a caller supplied lifetime into ``[MIN, MAX]`` seconds.

    ``None`` selects the default. Out of range values are clamped, never
    rejected.
    """

    if requested is None:
        return DEFAULT_URL_EXPIRATION
    try:
        seconds = int(requested)
    except OverflowError:
        return MAX_URL_EXPIRATION if requested > 0 else MIN_URL_EXPIRATION
    except (TypeError, ValueError):
        return DEFAULT_URL_EXPIRATION
    return max(MIN_URL_EXPIRATION, min(seconds, MAX_URL_EXPIRATION))
