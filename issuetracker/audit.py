from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal

from fastapi import Request
from fastapi.encoders import jsonable_encoder

from issuetracker.db.base import utcnow
from issuetracker.db.session import Database
from issuetracker.models.tracker import AuditEntry

logger = logging.getLogger(__name__)

AuditOp = Literal["insert", "update", "delete"]


class AuditLog:
    """
    Best-effort writer for the `edits` table.

    Runs in its own session after the primary change has been committed, so a
    failed audit write can neither block nor roll back that change.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def record(
        self,
        collection: str,
        op: AuditOp,
        target: Mapping[str, Any],
        performed_by: str,
        update: Mapping[str, Any] | None = None,
    ) -> bool:
        try:
            entry = AuditEntry(
                collection=collection,
                op=op,
                target=jsonable_encoder(dict(target)),
                update=jsonable_encoder(dict(update)) if update is not None else None,
                performed_by=performed_by,
                timestamp=utcnow(),
            )
            with self._database.session() as db:
                db.add(entry)
                db.commit()
        except Exception:
            logger.warning(
                "Audit write failed collection=%s op=%s target=%s", collection, op, dict(target), exc_info=True
            )
            return False
        return True


def get_audit_log(request: Request) -> AuditLog:
    audit = getattr(request.app.state, "audit_log", None)
    if audit is None:
        raise RuntimeError("Audit log not configured. Did app startup run?")
    return audit
