"""Facade exposing the media gate operations to the rest of the application."""

from __future__ import annotations

from typing import Optional

from media_gate.config import Settings
from media_gate.services import expiry
from media_gate.services.binding_token import (
    BindingTokenService,
    UserBindingToken,
    VerificationResult,
)
from media_gate.services.content_types import get_content_type_from_key
from media_gate.services.expiry import Clock, now_s
from media_gate.services.signing import HmacSigner, Signer, SigningSecret
from media_gate.storage.r2_signer import R2UrlSigner, SignedMediaUrl
from media_gate.storage.stream_tokens import SignedStreamToken, StreamTokenIssuer
from media_gate.telemetry.access_log import AccessLogEntry, AccessLogger

__all__ = ["MediaAccess"]


class MediaAccess:
    """Stateless services composed around one immutable signing secret."""

    MIN_URL_EXPIRATION = expiry.MIN_URL_EXPIRATION
    MAX_URL_EXPIRATION = expiry.MAX_URL_EXPIRATION
    DEFAULT_URL_EXPIRATION = expiry.DEFAULT_URL_EXPIRATION

    def __init__(
        self,
        settings: Settings,
        *,
        signer: Signer,
        clock: Optional[Clock] = None,
        access_logger: Optional[AccessLogger] = None,
        r2_signer: Optional[R2UrlSigner] = None,
        stream_issuer: Optional[StreamTokenIssuer] = None,
    ) -> None:
        self.settings = settings
        self.clock: Clock = clock or now_s
        self.binding_tokens = BindingTokenService(signer, clock=self.clock)
        self.access_logger = access_logger or AccessLogger(
            max_workers=settings.access_log_workers,
            max_pending=settings.access_log_queue_size,
        )
        self.r2_signer = r2_signer or R2UrlSigner(settings, clock=self.clock)
        self.stream_issuer = stream_issuer or StreamTokenIssuer(settings, clock=self.clock)

    @classmethod
    def from_settings(
        cls, settings: Settings, *, clock: Optional[Clock] = None
    ) -> "MediaAccess":
        """Build the facade; a missing signing secret raises ``ConfigurationFatal``."""

        secret = SigningSecret.from_text(settings.media_signing_secret)
        return cls(settings, signer=HmacSigner(secret), clock=clock)

    def create_user_binding_token(
        self,
        user_id: str,
        content_id: str,
        storage_key: str,
        expiry_seconds: Optional[int] = None,
    ) -> UserBindingToken:
        return self.binding_tokens.create(user_id, content_id, storage_key, expiry_seconds)

    def verify_user_binding_token(
        self,
        token: str,
        expected_user_id: str,
        expected_content_id: str,
        expected_storage_key: str,
    ) -> VerificationResult:
        return self.binding_tokens.verify(
            token, expected_user_id, expected_content_id, expected_storage_key
        )

    def generate_signed_r2_url(
        self,
        storage_key: str,
        expiry_seconds: Optional[int] = None,
        *,
        user_id: str,
        content_id: str,
        creator_id: Optional[str] = None,
        binding: Optional[str] = None,
    ) -> SignedMediaUrl:
        signed = self.r2_signer.generate(
            storage_key,
            user_id=user_id,
            content_id=content_id,
            expiry_seconds=expiry_seconds,
            binding=binding,
        )
        self.log_media_access(
            AccessLogEntry(
                user_id=user_id,
                content_id=content_id,
                storage_key=storage_key,
                decision="granted",
                reason="ok",
                action="url_generated",
                creator_id=creator_id,
                media_type=signed.type,
                expires_at=signed.expires_at,
            )
        )
        return signed

    def generate_signed_stream_token(
        self,
        video_uid: str,
        expiry_seconds: Optional[int] = None,
        *,
        content_id: str,
        user_id: str,
        creator_id: Optional[str] = None,
        storage_key: str = "",
    ) -> SignedStreamToken:
        signed = self.stream_issuer.issue(
            video_uid,
            content_id=content_id,
            user_id=user_id,
            creator_id=creator_id,
            expiry_seconds=expiry_seconds,
        )
        self.log_media_access(
            AccessLogEntry(
                user_id=user_id,
                content_id=content_id,
                storage_key=storage_key or video_uid,
                decision="granted",
                reason="ok",
                action="token_generated",
                creator_id=creator_id,
                media_type="video",
                expires_at=signed.expires_at,
            )
        )
        return signed

    def log_media_access(self, entry: AccessLogEntry) -> None:
        self.access_logger.log(entry)

    @staticmethod
    def get_content_type_from_key(storage_key: str) -> str:
        return get_content_type_from_key(storage_key)

    def close(self) -> None:
        self.access_logger.shutdown()
