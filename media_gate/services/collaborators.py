"""Interfaces for the collaborators the gate consumes but does not own."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Literal, Optional, Protocol, Set, Tuple

from media_gate.services.content_types import MediaKind, get_media_kind_from_key

__all__ = [
    "DenyAllEntitlements",
    "EntitlementChecker",
    "InMemoryMediaCatalog",
    "MediaAsset",
    "MediaCatalog",
    "StaticEntitlements",
]

Delivery = Literal["r2", "stream"]


@dataclass(frozen=True)
class MediaAsset:
    content_id: str
    storage_key: str
    creator_id: Optional[str] = None
    video_uid: Optional[str] = None

    @property
    def kind(self) -> MediaKind:
        if self.video_uid:
            return "video"
        return get_media_kind_from_key(self.storage_key)

    @property
    def delivery(self) -> Delivery:
        return "stream" if self.video_uid else "r2"


class EntitlementChecker(Protocol):
    def is_entitled(self, user_id: str, content_id: str) -> bool: ...


class MediaCatalog(Protocol):
    def lookup(self, content_id: str) -> Optional[MediaAsset]: ...


class DenyAllEntitlements:
    """Fallback used until the billing layer is wired in."""

    def is_entitled(self, user_id: str, content_id: str) -> bool:
        return False


class StaticEntitlements:
    def __init__(self, grants: Iterable[Tuple[str, str]] = ()) -> None:
        self._grants: Set[Tuple[str, str]] = set(grants)

    def grant(self, user_id: str, content_id: str) -> None:
        self._grants.add((user_id, content_id))

    def revoke(self, user_id: str, content_id: str) -> None:
        self._grants.discard((user_id, content_id))

    def is_entitled(self, user_id: str, content_id: str) -> bool:
        return (user_id, content_id) in self._grants


class InMemoryMediaCatalog:
    def __init__(self, assets: Iterable[MediaAsset] = ()) -> None:
        self._assets: Dict[str, MediaAsset] = {asset.content_id: asset for asset in assets}

    def add(self, asset: MediaAsset) -> None:
        self._assets[asset.content_id] = asset

    def lookup(self, content_id: str) -> Optional[MediaAsset]:
        return self._assets.get(content_id)
