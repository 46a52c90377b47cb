"""
Identity boundary: turns whatever the auth provider hands us into claims.

This package has no dependency on the database or security packages. The
raw role claim is normalized here, once, into a tuple of role codes.
"""

from .claims import IdentityClaims, RoleClaim, normalize_role_codes
from .config import JwtConfig
from .validator import TokenValidationError, TokenValidator, extract_identity

__all__ = [
    "IdentityClaims",
    "RoleClaim",
    "normalize_role_codes",
    "JwtConfig",
    "TokenValidator",
    "TokenValidationError",
    "extract_identity",
]
