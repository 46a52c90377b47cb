"""
Identity claims and role-claim normalization.

The identity layer hands us the caller's role in whatever shape it was
stored or issued: a bare code, a list of codes, a role object with a
`code`/`name` field, or a list of such objects. That raw value is parsed
exactly once into a `RoleClaim`, and everything past the boundary sees only
the canonical tuple of role-code strings.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

RoleClaimKind = Literal["none", "single", "list"]


@dataclass(frozen=True)
class RoleClaim:
    """
    Tagged representation of a raw role claim.

    kind:
        "none"   -> absent / unrecognized claim
        "single" -> one string or one role object
        "list"   -> a sequence of strings and/or role objects
    entries:
        One entry per raw element, already reduced to a code string or None
        (None marks an element that carried no usable code).
    """

    kind: RoleClaimKind
    entries: tuple[str | None, ...] = ()

    @classmethod
    def parse(cls, raw: Any) -> RoleClaim:
        if raw is None:
            return cls("none")
        if isinstance(raw, str):
            return cls("single", (_entry_code(raw),))
        if isinstance(raw, Mapping):
            return cls("single", (_entry_code(raw),))
        if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
            return cls("list", tuple(_entry_code(item) for item in raw))
        return cls("none")

    def role_codes(self) -> tuple[str, ...]:
        """Canonical, de-duplicated, order-preserving tuple of role codes."""

        if self.kind == "none" or not self.entries:
            return ()

        # A list led by a falsy entry counts as "no role", even if later entries are set.
        if self.kind == "list" and not self.entries[0]:
            return ()

        seen: dict[str, None] = {}
        for code in self.entries:
            if code and code not in seen:
                seen[code] = None
        return tuple(seen)


def _entry_code(item: Any) -> str | None:
    if isinstance(item, str):
        stripped = item.strip()
        return stripped or None
    if isinstance(item, Mapping):
        for key in ("code", "name"):
            value = item.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
    return None


def normalize_role_codes(raw: Any) -> tuple[str, ...]:
    """Never raises; unrecognized or empty shapes normalize to ()."""
    return RoleClaim.parse(raw).role_codes()


@dataclass(frozen=True)
class IdentityClaims:
    """
    Verified identity handed over by an identity provider.

    Populated from validated token claims (JWT provider). The header provider
    skips this and reads the user record directly.
    """

    subject: str
    """Provider subject (`sub`)."""

    email: str | None
    """Caller email; used to find the user record."""

    name: str | None = None
    """Display name; informational only."""

    role: Any = None
    """Raw role claim exactly as issued; parse with RoleClaim.parse()."""

    def to_dict(self) -> dict[str, object]:
        return {
            "subject": self.subject,
            "email": self.email,
            "name": self.name,
            "role": self.role,
        }
