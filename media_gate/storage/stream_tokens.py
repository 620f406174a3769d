"""Signed playback tokens for Cloudflare Stream.

The provider validates these tokens itself against the signing key registered
with it, so this module only has to encode the claims it expects: ``sub`` (the
video uid), ``kid``, ``exp`` and ``nbf``, plus access rules and a watermark
payload identifying the subscriber.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
import jwt

from media_gate.config import Settings
from media_gate.errors import ConfigurationFatal, InvalidGrant, StreamProviderError
from media_gate.services.expiry import Clock, clamp_expiry, now_s

__all__ = ["SignedStreamToken", "StreamTokenIssuer", "display_id"]

logger = logging.getLogger(__name__)

_API_BASE = "https://api.cloudflare.com/client/v4"
_CLOCK_SKEW_S = 60
_ACCESS_RULES = [{"type": "any", "action": "allow"}]


@dataclass(frozen=True)
class SignedStreamToken:
    token: str
    expires_at: int
    content_id: str
    video_uid: str
    user_id: str
    playback_url: str


def display_id(user_id: str) -> str:
    """Short subscriber identifier rendered in the visual watermark."""

    return hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:8].upper()


def _load_pem(raw: str) -> bytes:
    # Stream hands signing keys out base64 encoded; accept raw PEM as well.
    text = raw.strip()
    if text.startswith("-----BEGIN"):
        return text.encode("ascii")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationFatal("stream signing key is not valid PEM") from exc


def _http_client_factory(**kwargs: Any) -> httpx.Client:
    timeout = kwargs.pop("timeout", 10.0)
    return httpx.Client(timeout=timeout, **kwargs)


class StreamTokenIssuer:
    def __init__(
        self,
        settings: Settings,
        *,
        clock: Optional[Clock] = None,
        http_client_factory: Callable[..., httpx.Client] = _http_client_factory,
    ) -> None:
        self._settings = settings
        self._clock = clock or now_s
        self._http_client_factory = http_client_factory

    def issue(
        self,
        video_uid: str,
        *,
        content_id: str,
        user_id: str,
        creator_id: Optional[str] = None,
        expiry_seconds: Optional[int] = None,
    ) -> SignedStreamToken:
        if not video_uid:
            raise InvalidGrant("video_uid must not be empty")
        if not content_id:
            raise InvalidGrant("content_id must not be empty")

        now = self._clock()
        expires_at = now + clamp_expiry(expiry_seconds)
        if expires_at <= now:
            raise InvalidGrant("stream token window already expired")

        if self._settings.stream_local_signing:
            token = self._sign_locally(
                video_uid,
                now=now,
                expires_at=expires_at,
                content_id=content_id,
                user_id=user_id,
                creator_id=creator_id,
            )
        else:
            token = self._request_token(video_uid, expires_at=expires_at)

        return SignedStreamToken(
            token=token,
            expires_at=expires_at,
            content_id=content_id,
            video_uid=video_uid,
            user_id=user_id,
            playback_url=self.playback_url(token),
        )

    def playback_url(self, token: str) -> str:
        subdomain = (
            self._settings.stream_subdomain or self._settings.cloudflare_account_id
        )
        if not subdomain:
            raise ConfigurationFatal("CLOUDFLARE_STREAM_SUBDOMAIN must be set")
        return f"https://customer-{subdomain}.cloudflarestream.com/{token}/manifest/video.m3u8"

    def _sign_locally(
        self,
        video_uid: str,
        *,
        now: int,
        expires_at: int,
        content_id: str,
        user_id: str,
        creator_id: Optional[str],
    ) -> str:
        key_id = self._settings.stream_signing_key_id
        watermark: Dict[str, Any] = {
            "userId": user_id,
            "contentId": content_id,
            "displayId": display_id(user_id),
        }
        if creator_id:
            watermark["creatorId"] = creator_id
        claims = {
            "sub": video_uid,
            "kid": key_id,
            "exp": expires_at,
            "nbf": now - _CLOCK_SKEW_S,
            "accessRules": _ACCESS_RULES,
            "watermark": watermark,
        }
        key = _load_pem(self._settings.stream_signing_key_pem)
        return jwt.encode(claims, key, algorithm="RS256", headers={"kid": key_id})

    def _request_token(self, video_uid: str, *, expires_at: int) -> str:
        account = self._settings.cloudflare_account_id
        api_token = self._settings.cloudflare_api_token
        if not (account and api_token):
            raise ConfigurationFatal("Cloudflare Stream API credentials are not configured")

        url = f"{_API_BASE}/accounts/{account}/stream/{video_uid}/token"
        body = {"exp": expires_at, "accessRules": _ACCESS_RULES, "downloadable": False}
        headers = {"Authorization": f"Bearer {api_token}"}
        try:
            with self._http_client_factory(timeout=10.0) as client:
                response = client.post(url, json=body, headers=headers)
        except httpx.RequestError as exc:
            raise StreamProviderError(f"stream token request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "stream token api error",
                extra={"status": response.status_code, "video_uid": video_uid},
            )
            raise StreamProviderError(
                f"failed to generate stream token: {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise StreamProviderError("stream token api returned invalid json") from exc
        result = payload.get("result") or {}
        token = result.get("token") if isinstance(result, dict) else None
        if not payload.get("success") or not token:
            raise StreamProviderError("stream token api returned no token")
        return str(token)
