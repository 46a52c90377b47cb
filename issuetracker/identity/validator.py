"""
Verify bearer tokens from the external auth provider and extract identity claims.

Nothing in a token is trusted until signature, issuer, audience and lifetime
all check out. Only then are `sub`, `email`, `name` and the raw role claim
read into an `IdentityClaims`.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

from .claims import IdentityClaims
from .config import JwtConfig
from .jwks_cache import JWKSCache

logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when a bearer token fails verification. Never log the token itself."""


def _get_kid(token: str) -> str | None:
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError:
        return None
    kid = header.get("kid") if isinstance(header, dict) else None
    return str(kid) if kid else None


def extract_identity(payload: dict[str, Any]) -> IdentityClaims:
    """
    Map verified claims onto IdentityClaims.

    * `email` falls back to `preferred_username` (common for OIDC providers).
    * The role claim is taken from `role`, then `roles`, and left untouched:
      it may be a string, a list, or a role object.
    """

    subject = payload.get("sub") or ""
    email = payload.get("email") or payload.get("preferred_username")
    name = payload.get("name")
    role = payload.get("role")
    if role is None:
        role = payload.get("roles")

    return IdentityClaims(
        subject=str(subject),
        email=str(email) if email else None,
        name=str(name) if name else None,
        role=role,
    )


class TokenValidator:
    """Holds one JWKS cache and validates many tokens against it."""

    def __init__(self, config: JwtConfig | None = None) -> None:
        self._config = config or JwtConfig.from_environ()
        self._jwks = JWKSCache(self._config.jwks_uri, self._config.jwks_cache_ttl_seconds)

    @property
    def config(self) -> JwtConfig:
        return self._config

    def validate(self, token: str) -> IdentityClaims:
        kid = _get_kid(token)
        if not kid:
            logger.debug("Token missing or unreadable kid")
            raise TokenValidationError("Invalid token: missing key id")

        signing_key = self._jwks.get_signing_key(kid)
        if signing_key is None:
            raise TokenValidationError("Invalid token: unknown signing key")

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=list(self._config.algorithms),
                audience=self._config.audience,
                issuer=self._config.issuer,
                leeway=self._config.clock_skew_seconds,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Token expired")
            raise TokenValidationError("Token expired") from e
        except jwt.InvalidIssuerError as e:
            logger.info("Token invalid issuer")
            raise TokenValidationError("Invalid token: issuer") from e
        except jwt.InvalidAudienceError as e:
            logger.info("Token invalid audience")
            raise TokenValidationError("Invalid token: audience") from e
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise TokenValidationError("Invalid token") from e

        return extract_identity(payload)
