"""Pydantic schemas for tasks.

- TaskCreate: what you POST to create a task (project comes from the path)
- TaskUpdate: what you PATCH to modify a task (all optional, status included)
- StatusChange: the narrower status-only update
- TaskRead: what the API returns and what task events carry
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from taskhive.schemas import UtcDatetime

STATUS_PATTERN = r"^(todo|in_progress|done)$"
PRIORITY_PATTERN = r"^(low|medium|high)$"


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="")
    status: str = Field(default="todo", pattern=STATUS_PATTERN)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[UtcDatetime] = None
    order: int = Field(default=0, ge=0)


class TaskUpdate(BaseModel):
    """Partial update. Only fields present in the request are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[UtcDatetime] = None
    order: Optional[int] = Field(None, ge=0)

    @field_validator("title", "status", "priority", "order")
    @classmethod
    def not_null(cls, value):
        # Omit a field to leave it unchanged; null is not a value for it.
        if value is None:
            raise ValueError("must not be null")
        return value


class StatusChange(BaseModel):
    status: str = Field(..., pattern=STATUS_PATTERN)


class TaskRead(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: str
    status: str
    priority: str
    assignee_id: Optional[uuid.UUID]
    due_date: Optional[UtcDatetime]
    order: int
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}
