"""JWT provider configuration from environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from dataclasses import dataclass

_PREFIX = "ISSUETRACKER_JWT_"


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(_PREFIX + key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(_PREFIX + key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class JwtConfig:
    """
    Settings for verifying bearer tokens issued by the external auth provider.

    Required:
        ISSUETRACKER_JWT_ISSUER: Expected `iss` claim.
        ISSUETRACKER_JWT_AUDIENCE: Expected `aud` claim.
        ISSUETRACKER_JWT_JWKS_URI: Where the provider publishes its signing keys.

    Optional:
        ISSUETRACKER_JWT_CLOCK_SKEW_SECONDS: Tolerance for exp/nbf (default 120).
        ISSUETRACKER_JWT_JWKS_CACHE_TTL_SECONDS: How long to cache JWKS (default 3600).
        ISSUETRACKER_JWT_ALGORITHMS: Comma-separated list (default RS256).
    """

    issuer: str
    audience: str
    jwks_uri: str
    clock_skew_seconds: int = 120
    jwks_cache_ttl_seconds: int = 3600
    algorithms: tuple[str, ...] = ("RS256",)

    @classmethod
    def from_environ(cls) -> JwtConfig:
        issuer = _strip_or_none(_getenv("ISSUER"))
        audience = _strip_or_none(_getenv("AUDIENCE"))
        jwks_uri = _strip_or_none(_getenv("JWKS_URI"))
        if not issuer or not audience or not jwks_uri:
            raise ValueError(
                "ISSUETRACKER_JWT_ISSUER, ISSUETRACKER_JWT_AUDIENCE and ISSUETRACKER_JWT_JWKS_URI must be set"
            )
        algorithms = tuple(a.strip() for a in (_getenv("ALGORITHMS") or "RS256").split(",") if a.strip())
        return cls(
            issuer=issuer,
            audience=audience,
            jwks_uri=jwks_uri,
            clock_skew_seconds=_getenv_int("CLOCK_SKEW_SECONDS", 120),
            jwks_cache_ttl_seconds=_getenv_int("JWKS_CACHE_TTL_SECONDS", 3600),
            algorithms=algorithms or ("RS256",),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None
