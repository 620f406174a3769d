"""Shared pytest fixtures for media gate tests."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Mapping

import pytest

from media_gate.config import Settings
from media_gate.services.media_access import MediaAccess
from media_gate.services.signing import HmacSigner, SigningSecret
from media_gate.storage import r2_signer
from media_gate.telemetry.access_log import AccessLogger

BASE_TS = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = BASE_TS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class FakeS3Client:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def generate_presigned_url(self, **kwargs: Any) -> str:
        self.calls.append(kwargs)
        params = kwargs["Params"]
        return (
            f"https://acct.r2.cloudflarestorage.com/{params['Bucket']}/{params['Key']}"
            f"?X-Amz-Expires={kwargs['ExpiresIn']}&X-Amz-Signature=fake"
        )


class RecordingSink:
    def __init__(self) -> None:
        self.entries: List[Dict[str, Any]] = []

    def __call__(self, payload: Mapping[str, Any]) -> None:
        self.entries.append(dict(payload))

    def reasons(self) -> List[str]:
        return [entry["reason"] for entry in self.entries]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        media_signing_secret="unit-secret",
        media_gate_base_url="https://media.example",
        cloudflare_account_id="acct",
        r2_access_key_id="access",
        r2_secret_access_key="secret",
        r2_bucket_name="creator-media",
        stream_subdomain="sub123",
        cloudflare_api_token="api-token",
        app_env="test",
    )


@pytest.fixture
def fake_s3(monkeypatch: pytest.MonkeyPatch) -> FakeS3Client:
    client = FakeS3Client()

    def boto3_client(name: str, **kwargs: Any) -> FakeS3Client:
        assert name == "s3"
        return client

    monkeypatch.setattr(r2_signer, "boto3", SimpleNamespace(client=boto3_client))
    return client


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def access_logger(sink: RecordingSink):
    logger = AccessLogger(sink, max_workers=1)
    yield logger
    logger.shutdown()


@pytest.fixture
def signer(settings: Settings) -> HmacSigner:
    return HmacSigner(SigningSecret.from_text(settings.media_signing_secret))


@pytest.fixture
def access(
    settings: Settings,
    signer: HmacSigner,
    clock: FakeClock,
    access_logger: AccessLogger,
    fake_s3: FakeS3Client,
) -> MediaAccess:
    return MediaAccess(
        settings, signer=signer, clock=clock, access_logger=access_logger
    )
