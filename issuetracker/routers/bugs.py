from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from issuetracker.audit import AuditLog, get_audit_log
from issuetracker.db.base import utcnow
from issuetracker.db.resources import commit_or_conflict, get_bug_or_404
from issuetracker.db.session import get_db
from issuetracker.models.tracker import Bug
from issuetracker.schemas.tracker import (
    BugAssign,
    BugClassify,
    BugClose,
    BugCreate,
    BugOut,
    BugPage,
    BugUpdate,
    MutationResult,
    Pagination,
)
from issuetracker.schemas.validation import validate_body
from issuetracker.security.config import SecurityConfig
from issuetracker.security.context import RequestAuthz
from issuetracker.security.decorators import require_permissions
from issuetracker.security.dependencies import get_authz, get_security_config
from issuetracker.security.rules import (
    BUG_ASSIGN,
    BUG_CLASSIFY,
    BUG_CLOSE,
    BUG_EDIT,
    MutationRule,
    authorize_mutation,
    bug_facts,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bugs", tags=["bugs"])

_SORTS = {
    "newest": (Bug.created_on.desc(),),
    "oldest": (Bug.created_on.asc(),),
    "title": (Bug.title.asc(), Bug.created_on.desc()),
    "classification": (Bug.classification.asc(), Bug.created_on.desc()),
    "assigned_to": (Bug.assigned_to_user_name.asc(), Bug.created_on.desc()),
    "created_by": (Bug.author_of_bug.asc(), Bug.created_on.desc()),
}


@router.get("", response_model=BugPage)
def list_bugs(
    keywords: str | None = None,
    classification: str | None = None,
    closed: str | None = None,
    max_age: int | None = Query(default=None, ge=0),
    min_age: int | None = Query(default=None, ge=0),
    sort_by: str = "newest",
    page_size: int = Query(default=5, ge=1, le=100),
    page_number: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
) -> BugPage:
    stmt = select(Bug)

    if keywords:
        like = f"%{keywords}%"
        stmt = stmt.where(or_(Bug.title.ilike(like), Bug.description.ilike(like), Bug.steps_to_reproduce.ilike(like)))
    if classification:
        stmt = stmt.where(Bug.classification == classification)
    if max_age is not None:
        stmt = stmt.where(Bug.created_on >= utcnow() - timedelta(days=max_age))
    if min_age is not None:
        stmt = stmt.where(Bug.created_on < utcnow() - timedelta(days=min_age))
    # Anything other than "true"/"false" means no filter.
    if closed == "true":
        stmt = stmt.where(Bug.closed.is_(True))
    elif closed == "false":
        stmt = stmt.where(Bug.closed.is_not(True))

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    order = _SORTS.get(sort_by, _SORTS["newest"])
    bugs = db.scalars(stmt.order_by(*order).offset((page_number - 1) * page_size).limit(page_size)).all()

    total_pages = math.ceil(total / page_size)
    logger.debug("Found %d bugs (page %d of %d)", len(bugs), page_number, total_pages)
    return BugPage(
        bugs=[BugOut.model_validate(b) for b in bugs],
        pagination=Pagination(
            current_page=page_number,
            page_size=page_size,
            total_bugs=total,
            total_pages=total_pages,
            has_next_page=page_number < total_pages,
            has_previous_page=page_number > 1,
        ),
    )


@router.get("/{bug_id}", response_model=BugOut)
def get_bug(bug_id: str, db: Session = Depends(get_db)) -> Bug:
    return get_bug_or_404(db, bug_id)


@router.post("", response_model=MutationResult)
@require_permissions(["canCreateBug"])
def create_bug(
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    actor = authz.require_actor()
    body = validate_body(BugCreate, payload)

    bug = Bug(
        title=body.title,
        description=body.description,
        steps_to_reproduce=body.steps_to_reproduce,
        created_on=utcnow(),
        created_by=actor.email,
        author_of_bug=actor.email,
        classification="unclassified",
        closed=False,
    )
    db.add(bug)
    commit_or_conflict(db)
    logger.info("Bug created id=%s by=%s", bug.id, actor.email)

    audit.record("bug", "insert", {"bug_id": bug.id}, actor.email, BugOut.model_validate(bug).model_dump())
    return MutationResult(message="New bug reported!", id=bug.id)


def _authorized_bug(
    db: Session, bug_id: str, rule: MutationRule, authz: RequestAuthz, config: SecurityConfig
) -> Bug:
    """Load the bug (NotFound first), then apply the resource-scoped rule."""

    actor = authz.require_actor()
    bug = get_bug_or_404(db, bug_id)
    authorize_mutation(
        rule,
        actor,
        authz.effective_permissions(),
        bug_facts(bug),
        name_fallback=config.authorization.assignee_name_fallback,
    )
    return bug


def _apply(
    db: Session, bug: Bug, fields: dict[str, Any], audit: AuditLog, performed_by: str
) -> None:
    for name, value in fields.items():
        setattr(bug, name, value)
    commit_or_conflict(db)
    audit.record("bug", "update", {"bug_id": bug.id}, performed_by, fields)


@router.patch("/{bug_id}", response_model=MutationResult)
def update_bug(
    bug_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    config: SecurityConfig = Depends(get_security_config),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    bug = _authorized_bug(db, bug_id, BUG_EDIT, authz, config)
    body = validate_body(BugUpdate, payload)
    actor = authz.require_actor()

    fields: dict[str, Any] = body.model_dump(exclude_none=True)
    fields["last_updated_on"] = utcnow()
    fields["last_updated_by"] = actor.email

    _apply(db, bug, fields, audit, actor.email)
    logger.info("Bug updated id=%s by=%s", bug_id, actor.email)
    return MutationResult(message=f"Bug {bug_id} updated!", id=bug_id)


@router.patch("/{bug_id}/classify", response_model=MutationResult)
def classify_bug(
    bug_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    config: SecurityConfig = Depends(get_security_config),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    bug = _authorized_bug(db, bug_id, BUG_CLASSIFY, authz, config)
    body = validate_body(BugClassify, payload)
    actor = authz.require_actor()

    fields = {
        "classification": body.classification,
        "classified_on": utcnow(),
        "classified_by": actor.email,
    }
    _apply(db, bug, fields, audit, actor.email)
    logger.info("Bug classified id=%s as=%s by=%s", bug_id, body.classification, actor.email)
    return MutationResult(message=f"Bug {bug_id} classified!", id=bug_id)


@router.patch("/{bug_id}/assign", response_model=MutationResult)
def assign_bug(
    bug_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    config: SecurityConfig = Depends(get_security_config),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    bug = _authorized_bug(db, bug_id, BUG_ASSIGN, authz, config)
    body = validate_body(BugAssign, payload)
    actor = authz.require_actor()

    fields = {
        "assigned_to_user_id": body.assigned_to_user_id,
        "assigned_to_user_name": body.assigned_to_user_name,
        "assigned_on": utcnow(),
        "assigned_by": actor.email,
    }
    _apply(db, bug, fields, audit, actor.email)
    logger.info("Bug assigned id=%s to=%s by=%s", bug_id, body.assigned_to_user_id, actor.email)
    return MutationResult(message=f"Bug {bug_id} assigned!", id=bug_id)


@router.patch("/{bug_id}/close", response_model=MutationResult)
def close_bug(
    bug_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    config: SecurityConfig = Depends(get_security_config),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    bug = _authorized_bug(db, bug_id, BUG_CLOSE, authz, config)
    body = validate_body(BugClose, payload)
    actor = authz.require_actor()

    # Reopening clears the closure metadata rather than leaving it stale.
    fields = {
        "closed": body.closed,
        "closed_on": utcnow() if body.closed else None,
        "closed_by": actor.email if body.closed else None,
    }
    _apply(db, bug, fields, audit, actor.email)
    verb = "closed" if body.closed else "reopened"
    logger.info("Bug %s id=%s by=%s", verb, bug_id, actor.email)
    return MutationResult(message=f"Bug {bug_id} {verb}!", id=bug_id)
