from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from issuetracker.db.base import utcnow
from issuetracker.db.session import Database
from issuetracker.models.security import Role, User
from issuetracker.models.tracker import Bug

logger = logging.getLogger(__name__)

PERMISSION_NAMES = (
    "canViewData",
    "canCreateBug",
    "canEditMyBug",
    "canEditIfAssignedTo",
    "canReassignIfAssignedTo",
    "canBeAssignedTo",
    "canLogHours",
    "canApplyFixInVersion",
    "canAssignVersionDate",
    "canAddComment",
    "canAddTestCase",
    "canEditTestCase",
    "canDeleteTestCase",
    "canEditAnyBug",
    "canCloseAnyBug",
    "canClassifyAnyBug",
    "canReassignAnyBug",
    "canEditAnyUser",
    "canAssignRoles",
)


def _grants(*names: str) -> dict[str, bool]:
    unknown = set(names).difference(PERMISSION_NAMES)
    if unknown:
        raise ValueError(f"Unknown permission names in role matrix: {sorted(unknown)}")
    return {name: name in names for name in PERMISSION_NAMES}


_ASSIGNABLE = ("canViewData", "canEditIfAssignedTo", "canReassignIfAssignedTo", "canBeAssignedTo", "canAddComment")

ROLE_MATRIX: tuple[dict, ...] = (
    {
        "code": "DEV",
        "name": "Developer",
        "permissions": _grants(
            *_ASSIGNABLE,
            "canCreateBug",
            "canEditMyBug",
            "canLogHours",
            "canApplyFixInVersion",
            "canAssignVersionDate",
        ),
    },
    {
        "code": "QA",
        "name": "Quality Analyst",
        "permissions": _grants(
            *_ASSIGNABLE,
            "canCreateBug",
            "canEditMyBug",
            "canAddTestCase",
            "canEditTestCase",
            "canDeleteTestCase",
        ),
    },
    {
        "code": "BA",
        "name": "Business Analyst",
        "permissions": _grants(
            *_ASSIGNABLE,
            "canCreateBug",
            "canEditAnyBug",
            "canCloseAnyBug",
            "canClassifyAnyBug",
            "canReassignAnyBug",
        ),
    },
    {
        "code": "PM",
        "name": "Product Manager",
        "permissions": _grants(*_ASSIGNABLE, "canCreateBug", "canEditMyBug"),
    },
    {
        "code": "TM",
        "name": "Technical Manager",
        "permissions": _grants(
            *_ASSIGNABLE,
            "canAssignRoles",
            "canEditAnyUser",
            "canEditAnyBug",
            "canReassignAnyBug",
            "canEditMyBug",
        ),
    },
)

# Fixed ids so the header provider can be exercised with `Authorization: Bearer <id>`.
DEMO_USERS: tuple[dict, ...] = (
    {"id": "000000000000000000000001", "email": "dana.dev@example.com", "given_name": "Dana", "family_name": "Dev", "role": "DEV"},
    {"id": "000000000000000000000002", "email": "quinn.qa@example.com", "given_name": "Quinn", "family_name": "Qa", "role": ["QA"]},
    {"id": "000000000000000000000003", "email": "bailey.ba@example.com", "given_name": "Bailey", "family_name": "Ba", "role": "BA"},
    {"id": "000000000000000000000004", "email": "pat.pm@example.com", "given_name": "Pat", "family_name": "Pm", "role": "PM"},
    {"id": "000000000000000000000005", "email": "taylor.tm@example.com", "given_name": "Taylor", "family_name": "Tm", "role": ["TM", "DEV"]},
)


def init_db(database: Database, seed_demo_data: bool = False) -> None:
    """
    Create tables, upsert the role matrix, and optionally seed demo users and bugs.

    Role seeding is idempotent (keyed on `code`), so restarts pick up matrix changes.
    """

    database.create_all()

    with database.session() as db:
        upserted = seed_roles(db)
        logger.info("Role matrix seeded (%d roles)", upserted)
        if seed_demo_data and not _has_users(db):
            _seed_demo(db)
            logger.info("Demo users and bugs seeded")
        db.commit()


def seed_roles(db: Session, roles: tuple[dict, ...] = ROLE_MATRIX) -> int:
    existing = {r.code: r for r in db.scalars(select(Role)).all()}
    for spec in roles:
        role = existing.get(spec["code"])
        if role is None:
            db.add(Role(code=spec["code"], name=spec["name"], permissions=dict(spec["permissions"])))
        else:
            role.name = spec["name"]
            role.permissions = dict(spec["permissions"])
            role.updated_at = utcnow()
    db.flush()
    return len(roles)


def _has_users(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def _seed_demo(db: Session) -> None:
    users = [User(**spec) for spec in DEMO_USERS]
    db.add_all(users)
    db.flush()

    dev, qa = users[0], users[1]
    db.add_all(
        [
            Bug(
                title="Login button unresponsive",
                description="Clicking login does nothing on Safari.",
                steps_to_reproduce="Open /login in Safari, click the button.",
                created_by=dev.email,
                author_of_bug=dev.email,
            ),
            Bug(
                title="Search returns stale results",
                description="Results do not reflect recent edits.",
                steps_to_reproduce="Edit a bug title, then search for the new title.",
                created_by=qa.email,
                author_of_bug=qa.email,
                assigned_to_user_id=dev.id,
                assigned_to_user_name=dev.display_name,
                assigned_on=utcnow(),
                assigned_by=qa.email,
            ),
        ]
    )
