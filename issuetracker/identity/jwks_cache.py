"""
Signing-key cache for the JWT identity provider.

Keys are fetched from the provider's JWKS endpoint with `requests` and kept
for a TTL. A token whose `kid` is not in the cached set triggers exactly one
forced refresh (the provider may have rotated keys) before it is rejected.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests
from jwt import PyJWK

logger = logging.getLogger(__name__)


class JWKSCache:
    def __init__(self, jwks_uri: str, ttl_seconds: int, *, timeout: float = 10.0) -> None:
        self._uri = jwks_uri
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._keys: dict[str, dict[str, Any]] | None = None
        self._fetched_at: float = 0.0

    def _fetch(self) -> dict[str, dict[str, Any]]:
        resp = requests.get(self._uri, timeout=self._timeout)
        resp.raise_for_status()
        body = resp.json()
        keys: dict[str, dict[str, Any]] = {}
        for key_dict in body.get("keys") or []:
            kid = key_dict.get("kid")
            if kid:
                keys[kid] = key_dict
        return keys

    def refresh(self) -> None:
        self._keys = self._fetch()
        self._fetched_at = time.monotonic()
        logger.debug("JWKS refreshed uri=%s keys=%d", self._uri, len(self._keys))

    def _current(self) -> dict[str, dict[str, Any]]:
        if self._keys is None or (time.monotonic() - self._fetched_at) >= self._ttl:
            self.refresh()
        return self._keys or {}

    def get_signing_key(self, kid: str) -> PyJWK | None:
        key_dict = self._current().get(kid)
        if key_dict is None:
            logger.info("kid not in cached JWKS; forcing one refresh")
            self.refresh()
            key_dict = (self._keys or {}).get(kid)
        return PyJWK.from_dict(key_dict) if key_dict is not None else None
