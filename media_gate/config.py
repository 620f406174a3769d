"""Configuration helpers for the media gate service."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class _Settings(BaseSettings):
    media_signing_secret: str = Field(default="", alias="MEDIA_SIGNING_SECRET")
    media_gate_base_url: str = Field(default="", alias="MEDIA_GATE_BASE_URL")

    cloudflare_account_id: str = Field(default="", alias="CLOUDFLARE_ACCOUNT_ID")
    r2_access_key_id: str = Field(default="", alias="CLOUDFLARE_R2_ACCESS_KEY_ID")
    r2_secret_access_key: str = Field(
        default="", alias="CLOUDFLARE_R2_SECRET_ACCESS_KEY"
    )
    r2_bucket_name: str = Field(default="", alias="CLOUDFLARE_R2_BUCKET_NAME")
    r2_endpoint: str = Field(default="", alias="CLOUDFLARE_R2_ENDPOINT")

    cloudflare_api_token: str = Field(default="", alias="CLOUDFLARE_API_TOKEN")
    stream_signing_key_id: str = Field(
        default="", alias="CLOUDFLARE_STREAM_SIGNING_KEY_ID"
    )
    stream_signing_key_pem: str = Field(
        default="", alias="CLOUDFLARE_STREAM_SIGNING_KEY_PEM"
    )
    stream_subdomain: str = Field(default="", alias="CLOUDFLARE_STREAM_SUBDOMAIN")

    access_log_workers: int = Field(default=2, ge=1, alias="MEDIA_ACCESS_LOG_WORKERS")
    access_log_queue_size: int = Field(
        default=1000, ge=1, alias="MEDIA_ACCESS_LOG_QUEUE_SIZE"
    )
    app_env: str = Field(default="dev", alias="APP_ENV")

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    @property
    def r2_configured(self) -> bool:
        return bool(
            self.cloudflare_account_id or self.r2_endpoint
        ) and bool(
            self.r2_access_key_id and self.r2_secret_access_key and self.r2_bucket_name
        )

    @property
    def stream_local_signing(self) -> bool:
        return bool(self.stream_signing_key_id and self.stream_signing_key_pem)

    @property
    def stream_configured(self) -> bool:
        if not self.cloudflare_account_id:
            return False
        return self.stream_local_signing or bool(self.cloudflare_api_token)

    @property
    def strict(self) -> bool:
        return self.app_env.strip().lower() in {"staging", "production", "prod"}


Settings = _Settings


@lru_cache(maxsize=1)
def get_settings() -> _Settings:
    """Return cached application settings."""

    return _Settings()  # type: ignore[call-arg]


def reset_settings_cache() -> None:
    """Clear cached settings (primarily for tests)."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
