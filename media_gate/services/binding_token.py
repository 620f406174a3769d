"""User binding tokens tying a media grant to one (user, content) pair.

A token is a single opaque string::

    v1.<b64u(user_id)>.<b64u(content_id)>.<key_digest>.<issued_at>.<expires_at>.<sig>

``.`` never occurs inside base64url segments, so splitting is unambiguous.
``key_digest`` is a truncated SHA-256 of the storage key: the object path is
never revealed, yet the signature covers it. Verification always re-checks the
embedded identities against the *current* requester rather than trusting the
token on its own.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional, Union

from media_gate.errors import DenialReason, InvalidGrant
from media_gate.services.expiry import Clock, clamp_expiry, now_s
from media_gate.services.signing import Signer, urlsafe_b64decode, urlsafe_b64encode

__all__ = [
    "BindingTokenService",
    "Denial",
    "TOKEN_VERSION",
    "UserBindingToken",
    "Valid",
    "VerificationResult",
    "storage_key_digest",
]

TOKEN_VERSION = "v1"
_SEPARATOR = "."
_SEGMENTS = 7


def storage_key_digest(storage_key: str) -> str:
    digest = hashlib.sha256(storage_key.encode("utf-8")).digest()
    return urlsafe_b64encode(digest[:16])


@dataclass(frozen=True)
class UserBindingToken:
    signature: str
    user_id: str
    content_id: str
    key_digest: str
    issued_at: int
    expires_at: int
    version: str = TOKEN_VERSION

    def signed_fields(self) -> tuple[str, ...]:
        return signed_fields(
            self.version,
            self.user_id,
            self.content_id,
            self.key_digest,
            self.issued_at,
            self.expires_at,
        )

    def encode(self) -> str:
        return _SEPARATOR.join(
            [
                self.version,
                urlsafe_b64encode(self.user_id.encode("utf-8")),
                urlsafe_b64encode(self.content_id.encode("utf-8")),
                self.key_digest,
                str(self.issued_at),
                str(self.expires_at),
                self.signature,
            ]
        )

    @classmethod
    def parse(cls, token: str) -> "UserBindingToken":
        """Unpack ``token``; raises ``ValueError`` on any layout problem."""

        if not isinstance(token, str) or not token:
            raise ValueError("empty token")
        # The signature is always the final segment, whatever it contains.
        parts = token.split(_SEPARATOR, _SEGMENTS - 1)
        if len(parts) != _SEGMENTS:
            raise ValueError("invalid token format")
        version, user_raw, content_raw, key_digest, issued_raw, expires_raw, signature = parts
        if version != TOKEN_VERSION:
            raise ValueError(f"unsupported token version: {version!r}")
        if not all(v.isascii() and v.isdigit() for v in (issued_raw, expires_raw)):
            raise ValueError("invalid token timestamps")
        try:
            user_id = urlsafe_b64decode(user_raw).decode("utf-8")
            content_id = urlsafe_b64decode(content_raw).decode("utf-8")
        except ValueError as exc:
            raise ValueError("invalid token identity segment") from exc
        if not user_id or not content_id or not key_digest or not signature:
            raise ValueError("missing token segment")
        return cls(
            signature=signature,
            user_id=user_id,
            content_id=content_id,
            key_digest=key_digest,
            issued_at=int(issued_raw),
            expires_at=int(expires_raw),
            version=version,
        )


def signed_fields(
    version: str,
    user_id: str,
    content_id: str,
    key_digest: str,
    issued_at: int,
    expires_at: int,
) -> tuple[str, ...]:
    return (version, user_id, content_id, key_digest, str(issued_at), str(expires_at))


@dataclass(frozen=True)
class Valid:
    token: UserBindingToken

    ok = True


@dataclass(frozen=True)
class Denial:
    reason: DenialReason

    ok = False


VerificationResult = Union[Valid, Denial]


class BindingTokenService:
    """Mint and verify user binding tokens with an injected signer."""

    def __init__(self, signer: Signer, *, clock: Optional[Clock] = None) -> None:
        self._signer = signer
        self._clock = clock or now_s

    def create(
        self,
        user_id: str,
        content_id: str,
        storage_key: str,
        expiry_seconds: Optional[int] = None,
    ) -> UserBindingToken:
        if not user_id:
            raise InvalidGrant("user_id must not be empty")
        if not content_id:
            raise InvalidGrant("content_id must not be empty")
        if not storage_key:
            raise InvalidGrant("storage_key must not be empty")

        issued_at = self._clock()
        expires_at = issued_at + clamp_expiry(expiry_seconds)
        key_digest = storage_key_digest(storage_key)
        fields = signed_fields(
            TOKEN_VERSION, user_id, content_id, key_digest, issued_at, expires_at
        )
        return UserBindingToken(
            signature=self._signer.sign(fields),
            user_id=user_id,
            content_id=content_id,
            key_digest=key_digest,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(
        self,
        token: str,
        expected_user_id: str,
        expected_content_id: str,
        expected_storage_key: str,
    ) -> VerificationResult:
        try:
            parsed = UserBindingToken.parse(token)
        except ValueError:
            return Denial(DenialReason.MALFORMED)

        if not self._signer.verify(parsed.signed_fields(), parsed.signature):
            return Denial(DenialReason.BAD_SIGNATURE)

        if self._clock() > parsed.expires_at:
            return Denial(DenialReason.EXPIRED)

        if not expected_user_id or not hmac.compare_digest(
            parsed.user_id.encode("utf-8"), expected_user_id.encode("utf-8")
        ):
            return Denial(DenialReason.USER_MISMATCH)

        if parsed.content_id != expected_content_id:
            return Denial(DenialReason.CONTENT_MISMATCH)
        if not expected_storage_key or not hmac.compare_digest(
            parsed.key_digest.encode("utf-8"),
            storage_key_digest(expected_storage_key).encode("ascii"),
        ):
            return Denial(DenialReason.CONTENT_MISMATCH)

        return Valid(parsed)
