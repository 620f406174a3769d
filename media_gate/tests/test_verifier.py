from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import pytest

from media_gate.errors import AccessDenied, ContentNotFound, DenialReason, StreamProviderError
from media_gate.services.collaborators import (
    InMemoryMediaCatalog,
    MediaAsset,
    StaticEntitlements,
)
from media_gate.services.expiry import clamp_expiry
from media_gate.services.media_access import MediaAccess
from media_gate.services.verifier import MediaGateVerifier
from media_gate.storage.stream_tokens import SignedStreamToken

from .conftest import BASE_TS

AUDIO = MediaAsset("c-1", "content/creator-1/c-1/episode.mp3", creator_id="creator-1")
VIDEO = MediaAsset("c-2", "content/creator-1/c-2/clip.mp4", video_uid="uid-2")


class FakeSigner:
    """Deterministic stand-in for the keyed MAC; records every call."""

    def __init__(self) -> None:
        self.issued: Dict[str, Tuple[str, ...]] = {}
        self.verified: List[Tuple[str, ...]] = []

    def sign(self, fields: Sequence[str]) -> str:
        signature = f"fake{len(self.issued)}"
        self.issued[signature] = tuple(fields)
        return signature

    def verify(self, fields: Sequence[str], signature: str) -> bool:
        self.verified.append(tuple(fields))
        return self.issued.get(signature) == tuple(fields)


class StubStreamIssuer:
    def __init__(self, clock) -> None:
        self._clock = clock
        self.calls: List[dict] = []

    def issue(self, video_uid, *, content_id, user_id, creator_id=None, expiry_seconds=None):
        self.calls.append({"video_uid": video_uid, "user_id": user_id, "expiry": expiry_seconds})
        return SignedStreamToken(
            token=f"jwt-{user_id}",
            expires_at=self._clock() + clamp_expiry(expiry_seconds),
            content_id=content_id,
            video_uid=video_uid,
            user_id=user_id,
            playback_url=f"https://customer-sub123.cloudflarestream.com/jwt-{user_id}/manifest/video.m3u8",
        )


@pytest.fixture
def fake_signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def entitlements() -> StaticEntitlements:
    return StaticEntitlements({("user-a", "c-1"), ("user-a", "c-2")})


@pytest.fixture
def stream_issuer(clock) -> StubStreamIssuer:
    return StubStreamIssuer(clock)


@pytest.fixture
def verifier(settings, fake_signer, clock, access_logger, fake_s3, stream_issuer, entitlements):
    access = MediaAccess(
        settings,
        signer=fake_signer,
        clock=clock,
        access_logger=access_logger,
        stream_issuer=stream_issuer,
    )
    return MediaGateVerifier(
        access,
        catalog=InMemoryMediaCatalog([AUDIO, VIDEO]),
        entitlements=entitlements,
        gate_base_url="https://media.example",
    )


def test_grant_mints_binding_token_and_presigned_url(verifier, fake_s3, fake_signer):
    grant = verifier.grant("user-a", "c-1", 300)

    assert grant.token.startswith("v1.")
    assert grant.gate_url.startswith("https://media.example/api/content/c-1/asset?token=")
    assert grant.media_url.startswith("https://acct.r2.cloudflarestorage.com/creator-media/")
    assert grant.expires_at == BASE_TS + 300
    assert grant.type == "audio"
    assert grant.content_type == "audio/mpeg"
    assert fake_s3.calls[0]["Params"]["ResponseContentDisposition"] == f"inline; user={grant.token}"
    assert len(fake_signer.issued) == 1


def test_grant_for_video_uses_stream_issuer(verifier, stream_issuer, fake_s3):
    grant = verifier.grant("user-a", "c-2", 600)

    assert grant.type == "video"
    assert grant.media_url.endswith("/jwt-user-a/manifest/video.m3u8")
    assert stream_issuer.calls[0]["expiry"] == 600
    assert fake_s3.calls == []


def test_grant_denials_are_logged(verifier, access_logger, sink):
    with pytest.raises(AccessDenied) as not_entitled:
        verifier.grant("user-b", "c-1")
    with pytest.raises(AccessDenied) as anonymous:
        verifier.grant(None, "c-1")
    with pytest.raises(ContentNotFound):
        verifier.grant("user-a", "missing")
    access_logger.flush(timeout=5)

    assert not_entitled.value.reason is DenialReason.NOT_ENTITLED
    assert anonymous.value.reason is DenialReason.UNAUTHENTICATED
    assert sorted(sink.reasons()) == ["not_entitled", "unauthenticated"]


def test_redeem_revalidates_and_mints_fresh_url(verifier, clock, fake_s3, access_logger, sink):
    grant = verifier.grant("user-a", "c-1", 300)
    clock.advance(100)

    outcome = verifier.redeem(grant.token, user_id="user-a", content_id="c-1")
    access_logger.flush(timeout=5)

    assert outcome.granted is True
    assert outcome.redirect_url.startswith("https://acct.r2.cloudflarestorage.com/")
    assert outcome.expires_at == BASE_TS + 300
    # one presign for the grant, a new one for the redemption
    assert len(fake_s3.calls) == 2
    assert fake_s3.calls[1]["ExpiresIn"] == 200
    actions = [entry["action"] for entry in sink.entries]
    assert actions.count("access_validated") == 1


@pytest.mark.parametrize(
    "user_id, content_id, mutate, reason",
    [
        ("user-b", "c-1", None, DenialReason.USER_MISMATCH),
        ("user-a", "c-2", None, DenialReason.CONTENT_MISMATCH),
        ("user-a", "missing", None, DenialReason.CONTENT_MISMATCH),
        (None, "c-1", None, DenialReason.UNAUTHENTICATED),
        ("user-a", "c-1", lambda token: token[:-1] + "X", DenialReason.BAD_SIGNATURE),
        ("user-a", "c-1", lambda token: "garbage", DenialReason.MALFORMED),
    ],
)
def test_redeem_denials_are_uniform(
    verifier, access_logger, sink, user_id, content_id, mutate, reason
):
    token = verifier.grant("user-a", "c-1", 300).token
    if mutate is not None:
        token = mutate(token)

    outcome = verifier.redeem(token, user_id=user_id, content_id=content_id)
    access_logger.flush(timeout=5)

    assert outcome.granted is False
    assert outcome.redirect_url is None
    assert outcome.reason is reason
    denied = [entry for entry in sink.entries if entry["decision"] == "denied"]
    assert [entry["reason"] for entry in denied] == [reason.value]


def test_redeem_after_expiry_is_denied(verifier, clock, fake_s3):
    token = verifier.grant("user-a", "c-1", 300).token
    clock.advance(301)

    outcome = verifier.redeem(token, user_id="user-a", content_id="c-1")
    assert outcome.reason is DenialReason.EXPIRED
    assert len(fake_s3.calls) == 1


def test_revoked_entitlement_does_not_affect_outstanding_token(verifier, entitlements):
    token = verifier.grant("user-a", "c-1", 300).token
    entitlements.revoke("user-a", "c-1")

    assert verifier.redeem(token, user_id="user-a", content_id="c-1").granted is True
    with pytest.raises(AccessDenied):
        verifier.grant("user-a", "c-1")


def test_shared_token_scenario(verifier, clock):
    token = verifier.grant("user-a", "c-1", 300).token

    assert verifier.redeem(token, user_id="user-a", content_id="c-1").granted
    shared = verifier.redeem(token, user_id="user-b", content_id="c-1")
    assert shared.reason is DenialReason.USER_MISMATCH

    clock.advance(301)
    assert verifier.redeem(token, user_id="user-a", content_id="c-1").reason is DenialReason.EXPIRED


class FailingStreamIssuer:
    def issue(self, video_uid, **kwargs):
        raise StreamProviderError("failed to generate stream token: 500")


def test_provider_failure_is_logged_and_propagates(
    settings, fake_signer, clock, access_logger, sink, fake_s3, entitlements
):
    access = MediaAccess(
        settings,
        signer=fake_signer,
        clock=clock,
        access_logger=access_logger,
        stream_issuer=FailingStreamIssuer(),
    )
    verifier = MediaGateVerifier(
        access, catalog=InMemoryMediaCatalog([AUDIO, VIDEO]), entitlements=entitlements
    )

    with pytest.raises(StreamProviderError):
        verifier.grant("user-a", "c-2", 300)
    token = access.create_user_binding_token("user-a", "c-2", VIDEO.storage_key, 300).encode()
    with pytest.raises(StreamProviderError):
        verifier.redeem(token, user_id="user-a", content_id="c-2")
    access_logger.flush(timeout=5)

    assert sink.reasons() == ["delivery_unavailable", "delivery_unavailable"]
    assert all(entry["action"] == "access_denied" for entry in sink.entries)
    assert all(entry["media_type"] == "video" for entry in sink.entries)
