"""
Point-check permission gates.

`check_all` requires every named permission; `check_any` requires at least
one. Both reject a missing actor with Unauthenticated before resolving any
permissions.
"""

from __future__ import annotations

from collections.abc import Iterable

from issuetracker.errors import Forbidden
from issuetracker.security.context import RequestAuthz


def check_all(authz: RequestAuthz, permissions: Iterable[str]) -> None:
    authz.require_actor()
    required = sorted(set(permissions))
    if not required:
        return

    missing = [p for p in required if not authz.has(p)]
    if missing:
        raise Forbidden(missing=missing, reason="missing required permission")


def check_any(authz: RequestAuthz, permissions: Iterable[str]) -> None:
    authz.require_actor()
    alternatives = sorted(set(permissions))
    if not alternatives:
        return

    if not any(authz.has(p) for p in alternatives):
        raise Forbidden(missing=alternatives, reason="none of the alternative permissions held")
