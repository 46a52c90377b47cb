from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from issuetracker.db.session import get_db
from issuetracker.models.security import Role
from issuetracker.schemas.security import RoleOut
from issuetracker.security.decorators import require_any_permission

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=list[RoleOut])
@require_any_permission(["canViewData", "canAssignRoles"])
def list_roles(db: Session = Depends(get_db)) -> list[Role]:
    # Role administrators need the catalog even without general read access.
    return list(db.scalars(select(Role).order_by(Role.code)).all())
