"""Attachment API routes.

Uploads are multipart (`file` field). Only metadata is returned; the URL
comes from the configured AttachmentStorage.
"""

import uuid

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.dependencies import CurrentIdentity, get_current_user
from taskhive.config import settings
from taskhive.db.engine import get_db
from taskhive.realtime.rooms import Broadcaster, get_broadcaster
from taskhive.schemas.comment import AttachmentRead
from taskhive.services.attachment_service import AttachmentService

router = APIRouter()


def _attachment_svc(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> AttachmentService:
    return AttachmentService(db, broadcaster)


@router.get("/tasks/{task_id}/attachments", response_model=list[AttachmentRead])
async def list_attachments(
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AttachmentService = Depends(_attachment_svc),
):
    return await svc.list_attachments(identity.user_id, task_id)


@router.post("/tasks/{task_id}/attachments", response_model=AttachmentRead, status_code=201)
async def upload_attachment(
    task_id: uuid.UUID,
    file: UploadFile = File(...),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AttachmentService = Depends(_attachment_svc),
):
    # Read one byte past the limit so oversize uploads are detectable
    content = await file.read(settings.max_attachment_bytes + 1)
    return await svc.create_attachment(
        identity.user_id,
        task_id,
        filename=file.filename,
        content=content,
        mime_type=file.content_type,
    )


@router.delete("/attachments/{attachment_id}")
async def delete_attachment(
    attachment_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AttachmentService = Depends(_attachment_svc),
):
    """Uploader or project owner only."""
    await svc.delete_attachment(identity.user_id, attachment_id)
    return {"deleted": True}
