"""
Role Store access and effective-permission computation.

A caller holding several roles gets the logical OR of their permission
flags: a permission is granted if any held role grants it, never only when
all of them do. Roles are reference data administered out of band; nothing
here writes to the store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from issuetracker.db.session import Database
from issuetracker.errors import StoreUnavailable
from issuetracker.models.security import Role

logger = logging.getLogger(__name__)

EffectivePermissions = Mapping[str, bool]

_EMPTY: EffectivePermissions = MappingProxyType({})


@dataclass(frozen=True)
class RoleRecord:
    code: str
    name: str
    permissions: Mapping[str, bool] = field(default_factory=dict)


class RoleStore(Protocol):
    def find_by_codes(self, codes: Sequence[str]) -> list[RoleRecord]:
        """Return every role whose code (or legacy name) is in `codes`."""
        ...


class SqlRoleStore:
    """Role Store backed by the `roles` table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def find_by_codes(self, codes: Sequence[str]) -> list[RoleRecord]:
        codes = list(codes)
        try:
            with self._database.session() as db:
                rows = db.scalars(
                    select(Role).where(or_(Role.code.in_(codes), Role.name.in_(codes))).order_by(Role.id)
                ).all()
                return [RoleRecord(code=r.code, name=r.name, permissions=dict(r.permissions or {})) for r in rows]
        except SQLAlchemyError as exc:
            logger.exception("Role store query failed codes=%s", codes)
            raise StoreUnavailable() from exc


def merge_permissions(roles: Iterable[RoleRecord]) -> dict[str, bool]:
    merged: dict[str, bool] = {}
    for role in roles:
        for name, granted in (role.permissions or {}).items():
            if granted is True:
                merged[name] = True
    return merged


class PermissionResolver:
    def __init__(self, store: RoleStore) -> None:
        self._store = store

    def resolve(self, role_codes: Sequence[str]) -> EffectivePermissions:
        """
        OR-merge the permission flags of every role in `role_codes`.

        Empty input short-circuits without touching the store. Store failures
        propagate as StoreUnavailable so callers deny instead of granting.
        """

        if not role_codes:
            return _EMPTY

        roles = self._store.find_by_codes(role_codes)
        matched = {r.code for r in roles} | {r.name for r in roles}
        unknown = [c for c in role_codes if c not in matched]
        if unknown:
            logger.debug("Role codes with no matching role document: %s", unknown)

        merged = merge_permissions(roles)
        logger.debug("Effective permissions for %s -> %s", list(role_codes), sorted(merged))
        return MappingProxyType(merged)
