"""MembershipGuard: project-scoped authorization.

Every mutation handler (and every read of project data) goes through here
before touching the store. The resolution rule is always the same:

1. If given a task id, resolve it to the task's project id
   (NotFound if the task does not exist).
2. Load the project (NotFound if it does not exist).
3. Evaluate membership or ownership.

The guard is read-only and deliberately not a cache: membership changes
between requests (join/leave), so every call re-reads the project.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.models import Project, Task
from taskhive.errors import Forbidden, NotFound


def is_member(project: Project, user_id: uuid.UUID) -> bool:
    """The owner is implicitly a member."""
    return user_id == project.owner_id or user_id in project.member_ids


def is_owner(project: Project, user_id: uuid.UUID) -> bool:
    return user_id == project.owner_id


class MembershipGuard:
    """Decides membership/ownership for a subject against a project or task."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_project_id(self, task_id: uuid.UUID) -> uuid.UUID:
        """Map a task to the project that scopes its authorization."""
        result = await self.db.execute(
            select(Task.project_id).where(Task.id == task_id)
        )
        project_id = result.scalar_one_or_none()
        if project_id is None:
            raise NotFound("Task not found")
        return project_id

    async def load_project(self, project_id: uuid.UUID) -> Project:
        # populate_existing: an earlier load in this session must not hide
        # a membership change committed by another request.
        result = await self.db.execute(
            select(Project)
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        project = result.scalars().first()
        if project is None:
            raise NotFound("Project not found")
        return project

    async def check_member(
        self,
        subject_id: uuid.UUID,
        *,
        project_id: Optional[uuid.UUID] = None,
        task_id: Optional[uuid.UUID] = None,
    ) -> Project:
        """Return the project if `subject_id` is a member.

        Raises:
            NotFound: task or project does not exist
            Forbidden: subject is neither owner nor member
        """
        project = await self._resolve(project_id, task_id)
        if not is_member(project, subject_id):
            raise Forbidden("Not a member of this project")
        return project

    async def check_owner(
        self,
        subject_id: uuid.UUID,
        *,
        project_id: Optional[uuid.UUID] = None,
        task_id: Optional[uuid.UUID] = None,
    ) -> Project:
        """Return the project if `subject_id` owns it.

        Raises:
            NotFound: task or project does not exist
            Forbidden: subject is not the owner
        """
        project = await self._resolve(project_id, task_id)
        if not is_owner(project, subject_id):
            raise Forbidden("Only the project owner can do this")
        return project

    async def _resolve(
        self,
        project_id: Optional[uuid.UUID],
        task_id: Optional[uuid.UUID],
    ) -> Project:
        if (project_id is None) == (task_id is None):
            raise ValueError("Pass exactly one of project_id or task_id")
        if task_id is not None:
            project_id = await self.resolve_project_id(task_id)
        return await self.load_project(project_id)
