from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from issuetracker.audit import AuditLog, get_audit_log
from issuetracker.db.base import utcnow
from issuetracker.db.resources import commit_or_conflict, get_user_or_404
from issuetracker.db.session import get_db
from issuetracker.errors import Forbidden, ValidationFailed
from issuetracker.identity import normalize_role_codes
from issuetracker.models.security import User
from issuetracker.schemas.security import UserOut, UserSelfUpdate, UserUpdate
from issuetracker.schemas.tracker import MutationResult
from issuetracker.schemas.validation import validate_body
from issuetracker.security.context import Actor, RequestAuthz
from issuetracker.security.dependencies import get_authz, get_current_actor
from issuetracker.security.gates import check_all, check_any
from issuetracker.security.rules import ROLE_ASSIGNMENT_PERMISSIONS, USER_EDIT, ResourceFacts, authorize_mutation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

_SORTS = {
    "given_name": (User.given_name.asc(), User.created_at.asc()),
    "family_name": (User.family_name.asc(), User.created_at.asc()),
    "role": (User.created_at.asc(),),
    "newest": (User.created_at.desc(),),
    "oldest": (User.created_at.asc(),),
}


# /me is declared first so it is never captured by /{user_id}.
@router.get("/me", response_model=UserOut)
def read_me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)) -> User:
    return get_user_or_404(db, actor.id)


@router.patch("/me", response_model=MutationResult)
def update_me(
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    user = get_user_or_404(db, actor.id)

    # Role changes go through PATCH /users/{id}, never through self-service.
    if payload and "role" in payload:
        raise Forbidden(reason="cannot change own role")

    body = validate_body(UserSelfUpdate, payload)
    fields = _write_user(db, user, body.model_dump(exclude_none=True), actor)
    audit.record("user", "update", {"user_id": user.id}, actor.email, fields)
    return MutationResult(message="Your profile has been updated.", id=user.id)


@router.get("", response_model=list[UserOut])
def list_users(
    keywords: str | None = None,
    role: str | None = None,
    sort_by: str = "given_name",
    page_size: int = Query(default=5, ge=1, le=100),
    page_number: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
) -> list[User]:
    stmt = select(User)
    if keywords:
        like = f"%{keywords}%"
        stmt = stmt.where(
            or_(
                User.email.ilike(like),
                User.given_name.ilike(like),
                User.family_name.ilike(like),
                User.full_name.ilike(like),
            )
        )

    stmt = stmt.order_by(*_SORTS.get(sort_by, _SORTS["given_name"]))
    start = (page_number - 1) * page_size

    if not role and sort_by != "role":
        return list(db.scalars(stmt.offset(start).limit(page_size)).all())

    # Role is stored in several shapes, so filter and sort on it after normalizing.
    users = list(db.scalars(stmt).all())
    if role:
        users = [u for u in users if role in normalize_role_codes(u.role)]
    if sort_by == "role":
        users.sort(key=lambda u: normalize_role_codes(u.role) or ("",))
    return users[start : start + page_size]


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)) -> User:
    return get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=MutationResult)
def update_user(
    user_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    actor = authz.require_actor()
    user = get_user_or_404(db, user_id)

    raw = payload or {}
    if "role" in raw:
        if user.id == actor.id:
            raise Forbidden(reason="cannot change own role")
        check_any(authz, ROLE_ASSIGNMENT_PERMISSIONS)
    # Anything that is not purely a role change, an empty body included, is a profile edit.
    if set(raw) != {"role"}:
        authorize_mutation(USER_EDIT, actor, authz.effective_permissions(), ResourceFacts())

    body = validate_body(UserUpdate, payload)
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise ValidationFailed([{"type": "no_changes", "loc": ["body"], "msg": "No fields to update"}])
    fields = _write_user(db, user, changes, actor)
    audit.record("user", "update", {"user_id": user.id}, actor.email, fields)
    logger.info("User updated id=%s by=%s fields=%s", user.id, actor.email, sorted(changes))
    return MutationResult(message=f"User {user_id} updated!", id=user_id)


@router.delete("/{user_id}", response_model=MutationResult)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    actor = authz.require_actor()
    user = get_user_or_404(db, user_id)
    check_all(authz, ["canEditAnyUser"])

    db.delete(user)
    commit_or_conflict(db)
    logger.info("User deleted id=%s by=%s", user_id, actor.email)
    audit.record("user", "delete", {"user_id": user_id}, actor.email)
    return MutationResult(message=f"User {user_id} deleted!", id=user_id)


def _write_user(db: Session, user: User, changes: dict[str, Any], actor: Actor) -> dict[str, Any]:
    fields = dict(changes)
    if ("given_name" in fields or "family_name" in fields) and "full_name" not in fields:
        given = fields.get("given_name", user.given_name)
        family = fields.get("family_name", user.family_name)
        fields["full_name"] = " ".join(p for p in (given, family) if p) or user.full_name
    fields["last_updated_on"] = utcnow()
    fields["last_updated_by"] = actor.email

    for name, value in fields.items():
        setattr(user, name, value)
    commit_or_conflict(db)
    return fields
