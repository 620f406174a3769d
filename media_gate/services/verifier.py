"""Grant and redemption orchestration for gated media.

``grant`` runs after authentication: it asks the entitlement collaborator,
mints a binding token and hands back a gate URL plus a fresh downstream
credential. ``redeem`` runs on every asset fetch: it re-validates the binding
token against the *current* requester and only then mints a new downstream
URL, because a valid binding token says nothing about whether a previously
issued storage URL is still alive.

Every decision is written to the access log with its specific reason; callers
only ever see a uniform outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from media_gate.errors import (
    AccessDenied,
    ConfigurationFatal,
    ContentNotFound,
    DenialReason,
    StreamProviderError,
)
from media_gate.services.binding_token import Denial
from media_gate.services.collaborators import EntitlementChecker, MediaAsset, MediaCatalog
from media_gate.services.content_types import get_content_type_from_key
from media_gate.services.media_access import MediaAccess
from media_gate.telemetry.access_log import AccessLogEntry
from media_gate.utils.links import build_gate_url

__all__ = ["AccessOutcome", "MediaGateVerifier", "MediaGrant"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaGrant:
    token: str
    gate_url: str
    media_url: str
    expires_at: int
    type: str
    content_type: str
    content_id: str


@dataclass(frozen=True)
class AccessOutcome:
    granted: bool
    redirect_url: Optional[str] = None
    expires_at: Optional[int] = None
    reason: Optional[DenialReason] = None

    @classmethod
    def denied(cls, reason: DenialReason) -> "AccessOutcome":
        return cls(granted=False, reason=reason)


class MediaGateVerifier:
    def __init__(
        self,
        access: MediaAccess,
        *,
        catalog: MediaCatalog,
        entitlements: EntitlementChecker,
        gate_base_url: str = "",
    ) -> None:
        self._access = access
        self._catalog = catalog
        self._entitlements = entitlements
        self._gate_base_url = gate_base_url

    def now(self) -> int:
        return self._access.clock()

    def grant(
        self,
        user_id: Optional[str],
        content_id: str,
        expiry_seconds: Optional[int] = None,
    ) -> MediaGrant:
        asset = self._catalog.lookup(content_id)
        if asset is None:
            raise ContentNotFound(content_id)
        if not user_id:
            self._deny(None, content_id, asset, DenialReason.UNAUTHENTICATED)
            raise AccessDenied(DenialReason.UNAUTHENTICATED)
        if not self._entitlements.is_entitled(user_id, content_id):
            self._deny(user_id, content_id, asset, DenialReason.NOT_ENTITLED)
            raise AccessDenied(DenialReason.NOT_ENTITLED)

        binding = self._access.create_user_binding_token(
            user_id, content_id, asset.storage_key, expiry_seconds
        )
        encoded = binding.encode()
        media_url, downstream_expiry = self._mint_downstream(
            asset, user_id, binding.expires_at - binding.issued_at, encoded
        )
        return MediaGrant(
            token=encoded,
            gate_url=build_gate_url(self._gate_base_url, content_id, encoded),
            media_url=media_url,
            expires_at=min(binding.expires_at, downstream_expiry),
            type=asset.kind,
            content_type=get_content_type_from_key(asset.storage_key),
            content_id=content_id,
        )

    def redeem(
        self, token: Optional[str], *, user_id: Optional[str], content_id: str
    ) -> AccessOutcome:
        asset = self._catalog.lookup(content_id)
        if not user_id:
            return self._deny(None, content_id, asset, DenialReason.UNAUTHENTICATED)
        if asset is None:
            return self._deny(user_id, content_id, None, DenialReason.CONTENT_MISMATCH)

        result = self._access.verify_user_binding_token(
            token or "", user_id, content_id, asset.storage_key
        )
        if isinstance(result, Denial):
            return self._deny(user_id, content_id, asset, result.reason)

        remaining = result.token.expires_at - self.now()
        url, expires_at = self._mint_downstream(asset, user_id, remaining, token)
        self._access.log_media_access(
            AccessLogEntry(
                user_id=user_id,
                content_id=content_id,
                storage_key=asset.storage_key,
                decision="granted",
                reason="ok",
                action="access_validated",
                creator_id=asset.creator_id,
                media_type=asset.kind,
                expires_at=expires_at,
            )
        )
        return AccessOutcome(granted=True, redirect_url=url, expires_at=expires_at)

    def _mint_downstream(
        self,
        asset: MediaAsset,
        user_id: str,
        expiry_seconds: int,
        binding: Optional[str],
    ) -> tuple[str, int]:
        try:
            return self._sign_for_delivery(asset, user_id, expiry_seconds, binding)
        except (ConfigurationFatal, StreamProviderError) as exc:
            logger.error(
                "media delivery unavailable",
                extra={
                    "content_id": asset.content_id,
                    "delivery": asset.delivery,
                    "error": str(exc),
                },
            )
            self._deny(user_id, asset.content_id, asset, DenialReason.DELIVERY_UNAVAILABLE)
            raise

    def _sign_for_delivery(
        self,
        asset: MediaAsset,
        user_id: str,
        expiry_seconds: int,
        binding: Optional[str],
    ) -> tuple[str, int]:
        if asset.video_uid:
            stream = self._access.generate_signed_stream_token(
                asset.video_uid,
                expiry_seconds,
                content_id=asset.content_id,
                user_id=user_id,
                creator_id=asset.creator_id,
                storage_key=asset.storage_key,
            )
            return stream.playback_url, stream.expires_at
        signed = self._access.generate_signed_r2_url(
            asset.storage_key,
            expiry_seconds,
            user_id=user_id,
            content_id=asset.content_id,
            creator_id=asset.creator_id,
            binding=binding,
        )
        return signed.url, signed.expires_at

    def _deny(
        self,
        user_id: Optional[str],
        content_id: str,
        asset: Optional[MediaAsset],
        reason: DenialReason,
    ) -> AccessOutcome:
        logger.info(
            "media access denied",
            extra={"content_id": content_id, "reason": reason.value},
        )
        self._access.log_media_access(
            AccessLogEntry(
                user_id=user_id or "anonymous",
                content_id=content_id,
                storage_key=asset.storage_key if asset else "",
                decision="denied",
                reason=reason.value,
                action="access_denied",
                creator_id=asset.creator_id if asset else None,
                media_type=asset.kind if asset else None,
            )
        )
        return AccessOutcome.denied(reason)
