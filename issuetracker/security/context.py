from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from issuetracker.errors import Unauthenticated

if TYPE_CHECKING:
    from issuetracker.security.resolver import PermissionResolver


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller, built per request from the identity provider.

    role_codes is already normalized (see identity.claims).
    """

    id: str
    email: str
    full_name: str | None
    role_codes: tuple[str, ...]


class RequestAuthz:
    """
    Per-request authorization context, attached to `request.state.authz`.

    Effective permissions are resolved lazily on first use and reused for
    every check made while serving the same request.
    """

    def __init__(self, actor: Actor | None, resolver: PermissionResolver) -> None:
        self.actor = actor
        self._resolver = resolver
        self._effective: Mapping[str, bool] | None = None

    def require_actor(self) -> Actor:
        if self.actor is None:
            raise Unauthenticated()
        return self.actor

    def effective_permissions(self) -> Mapping[str, bool]:
        if self._effective is None:
            codes = self.actor.role_codes if self.actor is not None else ()
            self._effective = self._resolver.resolve(codes)
        return self._effective

    def has(self, permission: str) -> bool:
        return bool(self.effective_permissions().get(permission, False))
