from __future__ import annotations

import urllib.parse

__all__ = ["build_gate_url"]


def build_gate_url(base: str, content_id: str, token: str) -> str:
    """Construct the gate URL that the verifier resolves before serving an asset.

    Used where the storage backend has no native signing: the binding token
    travels as a query parameter and is re-validated on every fetch.
    """

    base = (base or "").rstrip("/")
    path = f"/api/content/{urllib.parse.quote(content_id, safe='')}/asset"
    query = urllib.parse.urlencode({"token": token})
    return f"{base}{path}?{query}"
