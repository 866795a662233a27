"""Pydantic schemas for projects and membership.

- ProjectCreate: what you POST to create a project (caller becomes owner)
- ProjectUpdate: owner-only partial update (all optional)
- ProjectRead: what the API returns, including member ids and invite code
- JoinRequest: join a project with its invite code
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from taskhive.schemas import UtcDatetime


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    deadline: Optional[UtcDatetime] = None


class ProjectUpdate(BaseModel):
    """Partial update. Only fields present in the request are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    deadline: Optional[UtcDatetime] = None

    @field_validator("name")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class ProjectRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    deadline: Optional[UtcDatetime]
    owner_id: uuid.UUID
    member_ids: list[uuid.UUID]
    invite_code: str
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}


class JoinRequest(BaseModel):
    invite_code: str = Field(..., min_length=4, max_length=32)
