from __future__ import annotations

from typing import Dict, Literal

__all__ = [
    "FALLBACK_CONTENT_TYPE",
    "MediaKind",
    "get_content_type_from_key",
    "get_media_kind_from_key",
]

MediaKind = Literal["video", "audio", "image"]

FALLBACK_CONTENT_TYPE = "application/octet-stream"

_CONTENT_TYPES: Dict[str, str] = {
    "mp4": "video/mp4",
    "m4v": "video/x-m4v",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "m3u8": "application/vnd.apple.mpegurl",
    "ts": "video/mp2t",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "aac": "audio/aac",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "avif": "image/avif",
}

_AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "aac", "m4a", "flac"})
_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif", "avif"})


def _extension(storage_key: str) -> str:
    path = (storage_key or "").split("?", 1)[0].split("#", 1)[0]
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].strip().lower()


def get_content_type_from_key(storage_key: str) -> str:
    """Return the MIME type for ``storage_key``; unknown suffixes fall back."""

    return _CONTENT_TYPES.get(_extension(storage_key), FALLBACK_CONTENT_TYPE)


def get_media_kind_from_key(storage_key: str) -> MediaKind:
    extension = _extension(storage_key)
    if extension in _AUDIO_EXTENSIONS:
        return "audio"
    if extension in _IMAGE_EXTENSIONS:
        return "image"
    return "video"
