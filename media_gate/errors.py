"""Error taxonomy for media grants and credential verification."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "AccessDenied",
    "ConfigurationFatal",
    "ContentNotFound",
    "DenialReason",
    "InvalidGrant",
    "MediaGateError",
    "StreamProviderError",
]


class DenialReason(str, Enum):
    """Internal reason codes; logged, never echoed to clients."""

    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    USER_MISMATCH = "user_mismatch"
    CONTENT_MISMATCH = "content_mismatch"
    NOT_ENTITLED = "not_entitled"
    UNAUTHENTICATED = "unauthenticated"
    DELIVERY_UNAVAILABLE = "delivery_unavailable"


class MediaGateError(Exception):
    """Base class for media gate failures."""


class InvalidGrant(MediaGateError, ValueError):
    """Raised when a mint request is already invalid (empty ids, past expiry)."""


class ConfigurationFatal(MediaGateError, RuntimeError):
    """Raised when required signing configuration is missing at startup."""


class ContentNotFound(MediaGateError, LookupError):
    """Raised when a grant names content the catalog does not know."""


class StreamProviderError(MediaGateError):
    """Raised when the streaming provider refuses to issue a token."""


class AccessDenied(MediaGateError):
    """Raised when a grant or redemption is refused.

    ``reason`` is kept for logging only; the HTTP layer maps every instance to
    the same generic response.
    """

    def __init__(self, reason: DenialReason) -> None:
        super().__init__(reason.value)
        self.reason = reason
