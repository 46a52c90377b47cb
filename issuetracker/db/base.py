from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    # Stored naive; every timestamp in the tables is UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)
