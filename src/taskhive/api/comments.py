"""Comment API routes."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.dependencies import CurrentIdentity, get_current_user
from taskhive.db.engine import get_db
from taskhive.realtime.rooms import Broadcaster, get_broadcaster
from taskhive.schemas.comment import CommentCreate, CommentRead
from taskhive.services.comment_service import CommentService

router = APIRouter()


def _comment_svc(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> CommentService:
    return CommentService(db, broadcaster)


@router.get("/tasks/{task_id}/comments", response_model=list[CommentRead])
async def list_comments(
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CommentService = Depends(_comment_svc),
):
    return await svc.list_comments(identity.user_id, task_id)


@router.post("/tasks/{task_id}/comments", response_model=CommentRead, status_code=201)
async def create_comment(
    task_id: uuid.UUID,
    body: CommentCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CommentService = Depends(_comment_svc),
):
    return await svc.create_comment(identity.user_id, task_id, body.body)
