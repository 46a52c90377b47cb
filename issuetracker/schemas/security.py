from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    description: str | None
    permissions: dict[str, bool]


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    given_name: str | None
    family_name: str | None
    full_name: str | None
    role: Any
    is_active: bool
    created_at: datetime
    last_updated_on: datetime | None
    last_updated_by: str | None


class UserSelfUpdate(BaseModel):
    """Fields a user may change on their own profile. `role` is never accepted here."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    full_name: str | None = Field(default=None, min_length=1)
    given_name: str | None = Field(default=None, min_length=1)
    family_name: str | None = Field(default=None, min_length=1)


class UserUpdate(UserSelfUpdate):
    role: str | list[str] | None = None
