"""API endpoints for minting and redeeming gated media credentials."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from media_gate.api.dependencies import get_verifier
from media_gate.api.user_header import UserIdHeader
from media_gate.errors import (
    AccessDenied,
    ConfigurationFatal,
    ContentNotFound,
    DenialReason,
    InvalidGrant,
    StreamProviderError,
)
from media_gate.services.verifier import MediaGateVerifier

router = APIRouter(prefix="/api/content", tags=["media"])

_NO_STORE = "no-store, no-cache, must-revalidate"
_REVALIDATE_CAP_S = 300
_REVALIDATE_MARGIN_S = 60
_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE


class MediaGrantOut(BaseModel):
    mediaUrl: str
    gateUrl: str
    token: str
    expiresAt: int
    type: str
    contentType: str
    contentId: str
    revalidateIn: int


@router.post("/{content_id}/media", response_model=MediaGrantOut)
def grant_media(
    content_id: str,
    response: Response,
    user_id: UserIdHeader = None,
    expires_in: Optional[int] = Query(default=None, alias="expiresIn"),
    verifier: MediaGateVerifier = Depends(get_verifier),
) -> MediaGrantOut:
    try:
        grant = verifier.grant(user_id, content_id, expires_in)
    except ContentNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "content not found") from exc
    except AccessDenied as exc:
        if exc.reason is DenialReason.UNAUTHENTICATED:
            raise HTTPException(
                status.HTTP_401_UNAUTHORIZED, "authentication required"
            ) from exc
        raise HTTPException(status.HTTP_403_FORBIDDEN, "subscription required") from exc
    except InvalidGrant as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "invalid media request") from exc
    except (ConfigurationFatal, StreamProviderError) as exc:
        raise HTTPException(_UNAVAILABLE, "media delivery unavailable") from exc

    now = verifier.now()
    revalidate_in = max(
        0, min(_REVALIDATE_CAP_S, grant.expires_at - now - _REVALIDATE_MARGIN_S)
    )
    response.headers["Cache-Control"] = _NO_STORE
    response.headers["X-Expires-At"] = str(grant.expires_at)
    return MediaGrantOut(
        mediaUrl=grant.media_url,
        gateUrl=grant.gate_url,
        token=grant.token,
        expiresAt=grant.expires_at,
        type=grant.type,
        contentType=grant.content_type,
        contentId=grant.content_id,
        revalidateIn=revalidate_in,
    )


@router.get("/{content_id}/asset")
def redeem_asset(
    content_id: str,
    user_id: UserIdHeader = None,
    token: Optional[str] = Query(default=None),
    verifier: MediaGateVerifier = Depends(get_verifier),
) -> RedirectResponse:
    try:
        outcome = verifier.redeem(token, user_id=user_id, content_id=content_id)
    except (ConfigurationFatal, StreamProviderError) as exc:
        raise HTTPException(_UNAVAILABLE, "media delivery unavailable") from exc
    if not outcome.granted or not outcome.redirect_url:
        # One response for every failed check; the reason is only logged.
        raise HTTPException(status.HTTP_403_FORBIDDEN, "access denied")
    return RedirectResponse(
        outcome.redirect_url,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Cache-Control": _NO_STORE, "X-Expires-At": str(outcome.expires_at)},
    )
