"""Project service: projects, invite codes and membership.

Service layer separates business logic from HTTP routing: API routes call
services, services call the database and raise taskhive.errors on failure.

Membership changes (join/leave) do not broadcast; peers learn about new
members the next time they fetch the project.
"""

import secrets
import string
import uuid
from typing import Callable, Optional

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.membership import MembershipGuard, is_member, is_owner
from taskhive.config import settings
from taskhive.db.models import Attachment, Comment, Project, ProjectMember, Task
from taskhive.errors import ConflictInvite, Forbidden, NotFound
from taskhive.schemas.project import ProjectCreate, ProjectUpdate

logger = structlog.get_logger()

INVITE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: Optional[int] = None) -> str:
    length = length or settings.invite_code_length
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(length))


class ProjectService:
    """Business logic for projects and their membership."""

    def __init__(
        self,
        db: AsyncSession,
        invite_codes: Callable[[], str] = generate_invite_code,
    ):
        self.db = db
        self.guard = MembershipGuard(db)
        self._invite_codes = invite_codes

    # ─── Create ──────────────────────────────────────────

    async def create_project(self, owner_id: uuid.UUID, data: ProjectCreate) -> Project:
        """Create a project owned by `owner_id` with a fresh invite code.

        An invite code that collides with an existing one is retried with a
        new code; the caller only sees a failure if every attempt collides.
        """
        for attempt in range(1, settings.invite_code_max_attempts + 1):
            code = self._invite_codes()
            project = Project(
                name=data.name,
                description=data.description,
                deadline=data.deadline,
                owner_id=owner_id,
                invite_code=code,
                memberships=[],
            )
            try:
                await self._insert(project, code)
            except ConflictInvite:
                logger.info("project.invite_code_collision", attempt=attempt)
                continue
            logger.info("project.created", project_id=str(project.id), owner_id=str(owner_id))
            return project
        raise ConflictInvite()

    async def _insert(self, project: Project, code: str) -> None:
        self.db.add(project)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if await self._invite_code_taken(code):
                raise ConflictInvite() from e
            raise

    async def _invite_code_taken(self, code: str) -> bool:
        result = await self.db.execute(
            select(Project.id).where(Project.invite_code == code)
        )
        return result.first() is not None

    # ─── Read ────────────────────────────────────────────

    async def list_projects(self, user_id: uuid.UUID) -> list[Project]:
        """Projects the user owns or has joined, most recently updated first."""
        joined = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        result = await self.db.execute(
            select(Project)
            .where(or_(Project.owner_id == user_id, Project.id.in_(joined)))
            .order_by(Project.updated_at.desc())
        )
        return list(result.scalars().all())

    async def get_project(self, user_id: uuid.UUID, project_id: uuid.UUID) -> Project:
        return await self.guard.check_member(user_id, project_id=project_id)

    # ─── Owner-only ──────────────────────────────────────

    async def update_project(
        self,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        data: ProjectUpdate,
    ) -> Project:
        project = await self.guard.check_owner(user_id, project_id=project_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "description" and value is None:
                value = ""
            setattr(project, field, value)
        await self.db.commit()
        return project

    async def delete_project(self, user_id: uuid.UUID, project_id: uuid.UUID) -> None:
        """Delete a project together with its tasks, comments, attachments and members."""
        await self.guard.check_owner(user_id, project_id=project_id)

        task_ids = select(Task.id).where(Task.project_id == project_id)
        await self.db.execute(delete(Attachment).where(Attachment.task_id.in_(task_ids)))
        await self.db.execute(delete(Comment).where(Comment.task_id.in_(task_ids)))
        await self.db.execute(delete(Task).where(Task.project_id == project_id))
        await self.db.execute(
            delete(ProjectMember).where(ProjectMember.project_id == project_id)
        )
        await self.db.execute(delete(Project).where(Project.id == project_id))
        await self.db.commit()
        logger.info("project.deleted", project_id=str(project_id))

    # ─── Membership ──────────────────────────────────────

    async def join(self, user_id: uuid.UUID, invite_code: str) -> Project:
        """Join the project holding `invite_code`. Idempotent for existing members."""
        result = await self.db.execute(
            select(Project).where(Project.invite_code == invite_code.strip().upper())
        )
        project = result.scalars().first()
        if project is None:
            raise NotFound("Invalid invite code")
        if is_member(project, user_id):
            return project

        project_id = project.id
        project.memberships.append(ProjectMember(user_id=user_id))
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent join by the same user won the race.
            await self.db.rollback()
        else:
            logger.info("project.member_joined", project_id=str(project_id), user_id=str(user_id))
        return await self.guard.load_project(project_id)

    async def leave(self, user_id: uuid.UUID, project_id: uuid.UUID) -> None:
        project = await self.guard.check_member(user_id, project_id=project_id)
        if is_owner(project, user_id):
            raise Forbidden("The project owner cannot leave the project")
        await self.db.execute(
            delete(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
        await self.db.commit()
        logger.info("project.member_left", project_id=str(project_id), user_id=str(user_id))
