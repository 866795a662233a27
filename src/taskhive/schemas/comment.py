"""Pydantic schemas for comments and attachments."""

import uuid

from pydantic import BaseModel, Field

from taskhive.schemas import UtcDatetime


# ─── Comments ────────────────────────────────────────────

class CommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=10_000)


class CommentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    author_id: uuid.UUID
    body: str
    created_at: UtcDatetime

    model_config = {"from_attributes": True}


# ─── Attachments ─────────────────────────────────────────

class AttachmentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    url: str
    filename: str
    size: int
    mime_type: str
    uploaded_by: uuid.UUID
    created_at: UtcDatetime

    model_config = {"from_attributes": True}
