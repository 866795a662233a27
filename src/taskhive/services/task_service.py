"""Task service: board CRUD with realtime broadcasts.

Every mutation follows the same pipeline:
1. Authorize against the task's project (MembershipGuard)
2. Apply exactly one write and commit it
3. Publish one typed event to the project's room

Step 3 only runs after the commit succeeds, so a failed mutation never
broadcasts. Any project member may create, update or delete any task;
there is no per-task ownership and no status state machine.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.membership import MembershipGuard
from taskhive.db.models import Attachment, Comment, Task
from taskhive.errors import NotFound
from taskhive.realtime.events import (
    TaskCreated,
    TaskDeleted,
    TaskStatusChanged,
    TaskUpdated,
)
from taskhive.realtime.rooms import Broadcaster
from taskhive.schemas.task import TaskCreate, TaskRead, TaskUpdate

logger = structlog.get_logger()


class TaskService:
    """Business logic for tasks on a project board."""

    def __init__(self, db: AsyncSession, broadcaster: Broadcaster):
        self.db = db
        self.guard = MembershipGuard(db)
        self.broadcaster = broadcaster

    # ─── Create ──────────────────────────────────────────

    async def create_task(
        self,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        data: TaskCreate,
    ) -> Task:
        await self.guard.check_member(user_id, project_id=project_id)

        task = Task(project_id=project_id, **data.model_dump())
        self.db.add(task)
        await self.db.commit()

        logger.info("task.created", task_id=str(task.id), project_id=str(project_id))
        self.broadcaster.publish(project_id, TaskCreated(task=TaskRead.model_validate(task)))
        return task

    # ─── Read ────────────────────────────────────────────

    async def list_tasks(
        self,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        status: Optional[str] = None,
        assignee_id: Optional[uuid.UUID] = None,
    ) -> list[Task]:
        """List a project's tasks in board order, optionally filtered."""
        await self.guard.check_member(user_id, project_id=project_id)

        query = select(Task).where(Task.project_id == project_id)
        if status:
            query = query.where(Task.status == status)
        if assignee_id:
            query = query.where(Task.assignee_id == assignee_id)
        query = query.order_by(Task.order.asc(), Task.created_at.asc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_task(self, user_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        await self.guard.check_member(user_id, task_id=task_id)
        return await self._load(task_id)

    # ─── Update ──────────────────────────────────────────

    async def update_task(
        self,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        data: TaskUpdate,
    ) -> Task:
        """Apply a partial update. Only fields present in the request change."""
        await self.guard.check_member(user_id, task_id=task_id)
        task = await self._load(task_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "description" and value is None:
                value = ""
            setattr(task, field, value)
        await self.db.commit()

        logger.info("task.updated", task_id=str(task_id))
        self.broadcaster.publish(task.project_id, TaskUpdated(task=TaskRead.model_validate(task)))
        return task

    async def change_status(
        self,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        status: str,
    ) -> Task:
        """Status-only update. Broadcasts the narrower `task:status` event."""
        await self.guard.check_member(user_id, task_id=task_id)
        task = await self._load(task_id)

        old_status = task.status
        task.status = status
        await self.db.commit()

        logger.info(
            "task.status_changed",
            task_id=str(task_id),
            from_status=old_status,
            to_status=status,
        )
        self.broadcaster.publish(
            task.project_id, TaskStatusChanged(task_id=task.id, status=task.status)
        )
        return task

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, user_id: uuid.UUID, task_id: uuid.UUID) -> None:
        """Delete a task and everything hanging off it."""
        project = await self.guard.check_member(user_id, task_id=task_id)
        project_id = project.id

        await self.db.execute(delete(Attachment).where(Attachment.task_id == task_id))
        await self.db.execute(delete(Comment).where(Comment.task_id == task_id))
        result = await self.db.execute(delete(Task).where(Task.id == task_id))
        if result.rowcount == 0:
            # Deleted by a concurrent request after the guard resolved it.
            await self.db.rollback()
            raise NotFound("Task not found")
        await self.db.commit()

        logger.info("task.deleted", task_id=str(task_id), project_id=str(project_id))
        self.broadcaster.publish(project_id, TaskDeleted(task_id=task_id))

    async def _load(self, task_id: uuid.UUID) -> Task:
        task = await self.db.get(Task, task_id, populate_existing=True)
        if task is None:
            raise NotFound("Task not found")
        return task
