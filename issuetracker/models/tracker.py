from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from issuetracker.db.base import Base, utcnow
from issuetracker.db.ids import new_id


class Bug(Base):
    __tablename__ = "bugs"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    steps_to_reproduce: Mapped[str] = mapped_column(Text, nullable=False)

    created_on: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    author_of_bug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    classification: Mapped[str] = mapped_column(String(50), default="unclassified", nullable=False, index=True)
    classified_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    classified_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Assignee is stored both by id and by display name; see security.rules.
    assigned_to_user_id: Mapped[str | None] = mapped_column(String(24), nullable=True, index=True)
    assigned_to_user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    closed_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    last_updated_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    comments: Mapped[list["Comment"]] = relationship(
        back_populates="bug", cascade="all, delete-orphan", order_by="Comment.id"
    )
    test_cases: Mapped[list["TestCase"]] = relationship(
        back_populates="bug", cascade="all, delete-orphan", order_by="TestCase.id"
    )

    __mapper_args__ = {"version_id_col": version}


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bug_id: Mapped[str] = mapped_column(ForeignKey("bugs.id"), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_on: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    bug: Mapped[Bug] = relationship(back_populates="comments")


class TestCase(Base):
    __tablename__ = "test_cases"
    __test__ = False  # keep pytest from collecting the model

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bug_id: Mapped[str] = mapped_column(ForeignKey("bugs.id"), nullable=False, index=True)
    test_name: Mapped[str] = mapped_column(String(200), nullable=False)
    test_description: Mapped[str] = mapped_column(Text, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)

    created_on: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    last_updated_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    bug: Mapped[Bug] = relationship(back_populates="test_cases")


class AuditEntry(Base):
    """Append-only record of who changed what, and when."""

    __tablename__ = "edits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    collection: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    op: Mapped[str] = mapped_column(String(10), nullable=False)
    target: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    update: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    performed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
