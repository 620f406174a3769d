from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from media_gate.config import get_settings
from media_gate.services.collaborators import (
    DenyAllEntitlements,
    EntitlementChecker,
    InMemoryMediaCatalog,
    MediaCatalog,
)
from media_gate.services.media_access import MediaAccess
from media_gate.services.verifier import MediaGateVerifier


@lru_cache(maxsize=1)
def get_media_access() -> MediaAccess:
    return MediaAccess.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_media_catalog() -> MediaCatalog:
    return InMemoryMediaCatalog()


@lru_cache(maxsize=1)
def get_entitlement_checker() -> EntitlementChecker:
    return DenyAllEntitlements()


def get_verifier(
    access: MediaAccess = Depends(get_media_access),
    catalog: MediaCatalog = Depends(get_media_catalog),
    entitlements: EntitlementChecker = Depends(get_entitlement_checker),
) -> MediaGateVerifier:
    return MediaGateVerifier(
        access,
        catalog=catalog,
        entitlements=entitlements,
        gate_base_url=access.settings.media_gate_base_url,
    )


def reset_dependency_caches() -> None:
    """Drop cached collaborators (primarily for tests)."""

    if get_media_access.cache_info().currsize:
        get_media_access().close()
    get_media_access.cache_clear()
    get_media_catalog.cache_clear()
    get_entitlement_checker.cache_clear()


__all__ = [
    "get_entitlement_checker",
    "get_media_access",
    "get_media_catalog",
    "get_verifier",
    "reset_dependency_caches",
]
