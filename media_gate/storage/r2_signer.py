"""Presigned GET URLs for objects stored in Cloudflare R2."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

from media_gate.config import Settings
from media_gate.errors import ConfigurationFatal, InvalidGrant
from media_gate.services.content_types import (
    MediaKind,
    get_content_type_from_key,
    get_media_kind_from_key,
)
from media_gate.services.expiry import Clock, clamp_expiry, now_s

__all__ = ["R2UrlSigner", "SignedMediaUrl"]


@dataclass(frozen=True)
class SignedMediaUrl:
    url: str
    expires_at: int
    type: MediaKind
    content_type: str
    content_id: str
    user_id: str


class R2UrlSigner:
    """Speaks R2's S3-compatible SigV4 query signing scheme via boto3."""

    def __init__(self, settings: Settings, *, clock: Optional[Clock] = None) -> None:
        self._settings = settings
        self._clock = clock or now_s
        self._client: Any = None
        self._lock = threading.Lock()

    def _endpoint(self) -> str:
        if self._settings.r2_endpoint:
            return self._settings.r2_endpoint.rstrip("/")
        account = self._settings.cloudflare_account_id
        if not account:
            raise ConfigurationFatal("CLOUDFLARE_ACCOUNT_ID must be set for R2 signing")
        return f"https://{account}.r2.cloudflarestorage.com"

    def _get_client(self):
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is not None:
                return self._client
            access_key = self._settings.r2_access_key_id
            secret_key = self._settings.r2_secret_access_key
            if not (access_key and secret_key):
                raise ConfigurationFatal("R2 access credentials are not configured")

            client_kwargs: Dict[str, Any] = {
                "endpoint_url": self._endpoint(),
                "aws_access_key_id": access_key,
                "aws_secret_access_key": secret_key,
            }
            self._client = boto3.client(
                "s3",
                region_name="auto",
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
                **client_kwargs,
            )
            return self._client

    def generate(
        self,
        storage_key: str,
        *,
        user_id: str,
        content_id: str,
        expiry_seconds: Optional[int] = None,
        binding: Optional[str] = None,
    ) -> SignedMediaUrl:
        """Return a presigned GET URL for ``storage_key``.

        Entitlement must already have been checked by the caller. ``binding``
        (an encoded user binding token) is echoed in the response disposition
        so storage access logs can be joined back to the grant.
        """

        if not storage_key:
            raise InvalidGrant("storage_key must not be empty")
        bucket = self._settings.r2_bucket_name
        if not bucket:
            raise ConfigurationFatal("CLOUDFLARE_R2_BUCKET_NAME must be set")

        expires_in = clamp_expiry(expiry_seconds)
        content_type = get_content_type_from_key(storage_key)
        disposition = "inline"
        if binding:
            disposition = f"inline; user={binding}"

        client = self._get_client()
        expires_at = self._clock() + expires_in
        url = client.generate_presigned_url(
            ClientMethod="get_object",
            Params={
                "Bucket": bucket,
                "Key": storage_key,
                "ResponseContentType": content_type,
                "ResponseContentDisposition": disposition,
            },
            ExpiresIn=expires_in,
            HttpMethod="GET",
        )
        return SignedMediaUrl(
            url=url,
            expires_at=expires_at,
            type=get_media_kind_from_key(storage_key),
            content_type=content_type,
            content_id=content_id,
            user_id=user_id,
        )
