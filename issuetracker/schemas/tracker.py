from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool

Classification = Literal["bug", "feature", "enhancement", "documentation", "duplicate", "invalid", "validation"]


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class BugCreate(_Body):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    steps_to_reproduce: str = Field(min_length=1)


class BugUpdate(_Body):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    steps_to_reproduce: str | None = Field(default=None, min_length=1)


class BugClassify(_Body):
    classification: Classification


class BugAssign(_Body):
    assigned_to_user_id: str = Field(min_length=1)
    assigned_to_user_name: str = Field(min_length=1)


class BugClose(_Body):
    closed: StrictBool


class CommentCreate(_Body):
    text: str = Field(min_length=1)


class TestCaseCreate(_Body):
    test_name: str = Field(min_length=1)
    test_description: str = Field(min_length=1)
    passed: StrictBool


class TestCaseUpdate(_Body):
    test_name: str | None = Field(default=None, min_length=1)
    test_description: str | None = Field(default=None, min_length=1)
    passed: StrictBool | None = None


class BugOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    steps_to_reproduce: str
    created_on: datetime
    created_by: str
    author_of_bug: str
    classification: str
    classified_on: datetime | None
    classified_by: str | None
    assigned_to_user_id: str | None
    assigned_to_user_name: str | None
    assigned_on: datetime | None
    assigned_by: str | None
    closed: bool
    closed_on: datetime | None
    closed_by: str | None
    last_updated_on: datetime | None
    last_updated_by: str | None


class Pagination(BaseModel):
    current_page: int
    page_size: int
    total_bugs: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class BugPage(BaseModel):
    bugs: list[BugOut]
    pagination: Pagination


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bug_id: str
    text: str
    created_on: datetime
    created_by: str


class TestCaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bug_id: str
    test_name: str
    test_description: str
    passed: bool
    created_on: datetime
    created_by: str
    last_updated_on: datetime | None
    last_updated_by: str | None


class MutationResult(BaseModel):
    message: str
    id: str | int
