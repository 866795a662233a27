"""Task API routes.

Routes are thin: TaskService authorizes, writes and broadcasts.

Key patterns:
- POST for creation
- PATCH for partial updates; PATCH /status for the status-only variant,
  which broadcasts `task:status` instead of `task:update`
- Query params for filtering (status, assignee_id)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.dependencies import CurrentIdentity, get_current_user
from taskhive.db.engine import get_db
from taskhive.realtime.rooms import Broadcaster, get_broadcaster
from taskhive.schemas.task import STATUS_PATTERN, StatusChange, TaskCreate, TaskRead, TaskUpdate
from taskhive.services.task_service import TaskService

router = APIRouter()


def _task_svc(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> TaskService:
    return TaskService(db, broadcaster)


@router.post("/projects/{project_id}/tasks", response_model=TaskRead, status_code=201)
async def create_task(
    project_id: uuid.UUID,
    body: TaskCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    return await svc.create_task(identity.user_id, project_id, body)


@router.get("/projects/{project_id}/tasks", response_model=list[TaskRead])
async def list_tasks(
    project_id: uuid.UUID,
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN, description="Filter by status"),
    assignee_id: Optional[uuid.UUID] = Query(None, description="Filter by assignee"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    """List tasks in board order (`order`, then creation time)."""
    return await svc.list_tasks(identity.user_id, project_id, status, assignee_id)


@router.get("/tasks/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    return await svc.get_task(identity.user_id, task_id)


@router.patch("/tasks/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    return await svc.update_task(identity.user_id, task_id, body)


@router.patch("/tasks/{task_id}/status", response_model=TaskRead)
async def change_status(
    task_id: uuid.UUID,
    body: StatusChange,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    return await svc.change_status(identity.user_id, task_id, body.status)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    await svc.delete_task(identity.user_id, task_id)
    return {"deleted": True}
