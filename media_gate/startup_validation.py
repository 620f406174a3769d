from __future__ import annotations

import logging
from typing import List, Optional

from media_gate.config import Settings, get_settings
from media_gate.errors import ConfigurationFatal

logger = logging.getLogger(__name__)


def validate_startup(settings: Optional[Settings] = None) -> None:
    """Fail fast on missing critical configuration."""

    settings = settings or get_settings()
    errors: List[str] = []

    if not settings.media_signing_secret.strip():
        errors.append("MEDIA_SIGNING_SECRET must be set")

    if settings.strict:
        if not settings.r2_configured:
            errors.append(
                "CLOUDFLARE_R2_* credentials and bucket must be set for media delivery"
            )
        if not settings.stream_configured:
            errors.append(
                "CLOUDFLARE_STREAM_SIGNING_KEY_* or CLOUDFLARE_API_TOKEN must be set for video delivery"
            )
        if not settings.media_gate_base_url:
            errors.append("MEDIA_GATE_BASE_URL must be set")
    else:
        # Requests for an unconfigured backend answer 503 until it is set.
        if not settings.r2_configured:
            logger.warning("R2 delivery is not configured; R2 assets are unavailable")
        if not settings.stream_configured:
            logger.warning("Stream delivery is not configured; video assets are unavailable")

    if errors:
        joined = "; ".join(errors)
        raise ConfigurationFatal(f"Startup validation failed: {joined}")


__all__ = ["validate_startup"]
