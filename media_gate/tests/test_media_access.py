from __future__ import annotations

import pytest

from media_gate.errors import ConfigurationFatal
from media_gate.services.binding_token import Valid
from media_gate.services.expiry import DEFAULT_URL_EXPIRATION
from media_gate.services.media_access import MediaAccess
from media_gate.storage.stream_tokens import SignedStreamToken

from .conftest import BASE_TS


def test_facade_exposes_expiry_constants():
    assert MediaAccess.DEFAULT_URL_EXPIRATION == DEFAULT_URL_EXPIRATION
    assert MediaAccess.MIN_URL_EXPIRATION < MediaAccess.MAX_URL_EXPIRATION


def test_binding_round_trip_through_facade(access):
    token = access.create_user_binding_token("user-a", "c-1", "k/a.mp3", 300)
    result = access.verify_user_binding_token(token.encode(), "user-a", "c-1", "k/a.mp3")
    assert isinstance(result, Valid)


def test_signed_r2_url_is_logged(access, fake_s3, sink):
    signed = access.generate_signed_r2_url(
        "content/c-1/cover.png", 120, user_id="user-a", content_id="c-1", creator_id="cr-1"
    )
    access.access_logger.flush(timeout=5)

    assert signed.expires_at == BASE_TS + 120
    assert signed.type == "image"
    assert fake_s3.calls[0]["ExpiresIn"] == 120
    assert len(sink.entries) == 1
    entry = sink.entries[0]
    assert entry["action"] == "url_generated"
    assert entry["decision"] == "granted"
    assert entry["storage_key"] == "content/c-1/cover.png"
    assert entry["creator_id"] == "cr-1"
    assert entry["expires_at"] == BASE_TS + 120


class _StubIssuer:
    def __init__(self) -> None:
        self.calls = []

    def issue(self, video_uid, **kwargs):
        self.calls.append((video_uid, kwargs))
        return SignedStreamToken(
            token="tok",
            expires_at=BASE_TS + 60,
            content_id=kwargs["content_id"],
            video_uid=video_uid,
            user_id=kwargs["user_id"],
            playback_url="https://customer-sub123.cloudflarestream.com/tok/manifest/video.m3u8",
        )


def test_stream_token_is_logged(settings, signer, clock, access_logger, sink):
    issuer = _StubIssuer()
    access = MediaAccess(
        settings,
        signer=signer,
        clock=clock,
        access_logger=access_logger,
        stream_issuer=issuer,
    )

    signed = access.generate_signed_stream_token(
        "uid-1", 60, content_id="c-1", user_id="user-a"
    )
    access_logger.flush(timeout=5)

    assert signed.token == "tok"
    assert issuer.calls[0][1]["expiry_seconds"] == 60
    entry = sink.entries[0]
    assert entry["action"] == "token_generated"
    assert entry["media_type"] == "video"
    assert entry["storage_key"] == "uid-1"


def test_content_type_passthrough(access):
    assert access.get_content_type_from_key("x/y.mp4") == "video/mp4"


def test_from_settings_requires_secret(settings):
    with pytest.raises(ConfigurationFatal):
        MediaAccess.from_settings(settings.model_copy(update={"media_signing_secret": ""}))
