from __future__ import annotations

import logging
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from issuetracker.db.base import Base
from issuetracker.db.ids import is_valid_id
from issuetracker.errors import Conflict, NotFound, StoreUnavailable
from issuetracker.models.security import User
from issuetracker.models.tracker import Bug

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


def _get_or_404(db: Session, model: type[T], kind: str, resource_id: str) -> T:
    # Malformed ids are reported exactly like missing ones, before any permission check.
    if not is_valid_id(resource_id):
        logger.debug("Malformed %s id=%r", kind, resource_id)
        raise NotFound(f"{kind}Id {resource_id} is not a valid id.")

    try:
        obj = db.get(model, resource_id)
    except SQLAlchemyError as exc:
        logger.exception("Resource store read failed kind=%s id=%s", kind, resource_id)
        raise StoreUnavailable() from exc

    if obj is None:
        raise NotFound.for_resource(kind.capitalize(), resource_id)
    return obj


def get_bug_or_404(db: Session, bug_id: str) -> Bug:
    return _get_or_404(db, Bug, "bug", bug_id)


def get_user_or_404(db: Session, user_id: str) -> User:
    return _get_or_404(db, User, "user", user_id)


def parse_child_id(kind: str, value: str) -> int:
    """Comments and test cases use integer ids; anything else is simply not found."""
    if not value.isdigit():
        raise NotFound(f"{kind} id {value} is not a valid id.")
    return int(value)


def commit_or_conflict(db: Session) -> None:
    """
    Commit pending changes.

    Versioned rows (bugs, users) are updated with `WHERE version = <read version>`,
    so a write racing with another request surfaces as Conflict rather than
    silently applying on top of facts that were never authorized.
    """

    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.info("Concurrent modification detected: %s", exc)
        raise Conflict() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Resource store write failed")
        raise StoreUnavailable() from exc
