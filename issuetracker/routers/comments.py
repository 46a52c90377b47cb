from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from issuetracker.audit import AuditLog, get_audit_log
from issuetracker.db.base import utcnow
from issuetracker.db.resources import commit_or_conflict, get_bug_or_404, parse_child_id
from issuetracker.db.session import get_db
from issuetracker.errors import NotFound
from issuetracker.models.tracker import Comment
from issuetracker.schemas.tracker import CommentCreate, CommentOut, MutationResult
from issuetracker.schemas.validation import validate_body
from issuetracker.security.context import RequestAuthz
from issuetracker.security.dependencies import get_authz
from issuetracker.security.gates import check_all

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bugs/{bug_id}/comments", tags=["comments"])


@router.get("", response_model=list[CommentOut])
def list_comments(bug_id: str, db: Session = Depends(get_db)) -> list[Comment]:
    bug = get_bug_or_404(db, bug_id)
    return list(bug.comments)


@router.get("/{comment_id}", response_model=CommentOut)
def get_comment(bug_id: str, comment_id: str, db: Session = Depends(get_db)) -> Comment:
    get_bug_or_404(db, bug_id)
    stmt = select(Comment).where(Comment.bug_id == bug_id, Comment.id == parse_child_id("Comment", comment_id))
    comment = db.scalars(stmt).first()
    if comment is None:
        raise NotFound.for_resource("Comment", comment_id)
    return comment


@router.post("", response_model=MutationResult)
def add_comment(
    bug_id: str,
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    authz: RequestAuthz = Depends(get_authz),
    audit: AuditLog = Depends(get_audit_log),
) -> MutationResult:
    actor = authz.require_actor()
    get_bug_or_404(db, bug_id)
    check_all(authz, ["canAddComment"])
    body = validate_body(CommentCreate, payload)

    comment = Comment(bug_id=bug_id, text=body.text, created_on=utcnow(), created_by=actor.email)
    db.add(comment)
    commit_or_conflict(db)
    logger.info("Comment added bug=%s id=%s by=%s", bug_id, comment.id, actor.email)

    audit.record("comment", "insert", {"bug_id": bug_id, "comment_id": comment.id}, actor.email, {"text": body.text})
    return MutationResult(message="Comment added!", id=comment.id)
