"""Keyed message authentication shared by the token and URL signers."""

from __future__ import annotations

import base64
import hmac
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Protocol, Sequence

from media_gate.errors import ConfigurationFatal

__all__ = ["HmacSigner", "Signer", "SigningSecret", "urlsafe_b64decode", "urlsafe_b64encode"]

SIGNATURE_LENGTH = 43


def urlsafe_b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def urlsafe_b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


@dataclass(frozen=True)
class SigningSecret:
    """Process wide signing key; loaded once, never mutated or logged."""

    value: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if not self.value:
            raise ConfigurationFatal("MEDIA_SIGNING_SECRET must be set")

    @classmethod
    def from_text(cls, text: str | None) -> "SigningSecret":
        if not text or not text.strip():
            raise ConfigurationFatal("MEDIA_SIGNING_SECRET must be set")
        return cls(text.encode("utf-8"))

    def __repr__(self) -> str:
        return "SigningSecret(<redacted>)"


class Signer(Protocol):
    def sign(self, fields: Sequence[str]) -> str: ...

    def verify(self, fields: Sequence[str], signature: str) -> bool: ...


def _encode_fields(fields: Sequence[str]) -> bytes:
    # Length prefixes keep ("a:b", "c") and ("a", "b:c") distinct.
    parts = []
    for item in fields:
        raw = item.encode("utf-8")
        parts.append(str(len(raw)).encode("ascii") + b":" + raw)
    return b"|".join(parts)


class HmacSigner:
    """HMAC-SHA256 over an ordered sequence of string fields."""

    def __init__(self, secret: SigningSecret) -> None:
        self._secret = secret

    def sign(self, fields: Sequence[str]) -> str:
        digest = hmac.new(self._secret.value, _encode_fields(fields), sha256).digest()
        return urlsafe_b64encode(digest)

    def verify(self, fields: Sequence[str], signature: str) -> bool:
        """Constant time check of ``signature``; malformed input yields ``False``."""

        if not isinstance(signature, str) or len(signature) != SIGNATURE_LENGTH:
            return False
        try:
            expected = self.sign(fields)
        except (AttributeError, TypeError, UnicodeError):
            return False
        return hmac.compare_digest(
            signature.encode("ascii", "replace"), expected.encode("ascii")
        )
