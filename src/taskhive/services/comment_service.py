"""Comment service: task discussion threads."""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.membership import MembershipGuard
from taskhive.db.models import Comment
from taskhive.realtime.events import CommentCreated
from taskhive.realtime.rooms import Broadcaster
from taskhive.schemas.comment import CommentRead

logger = structlog.get_logger()


class CommentService:
    def __init__(self, db: AsyncSession, broadcaster: Broadcaster):
        self.db = db
        self.guard = MembershipGuard(db)
        self.broadcaster = broadcaster

    async def create_comment(
        self,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        body: str,
    ) -> Comment:
        """Post a comment as `user_id`. Any project member may comment."""
        project = await self.guard.check_member(user_id, task_id=task_id)
        project_id = project.id

        comment = Comment(task_id=task_id, author_id=user_id, body=body)
        self.db.add(comment)
        await self.db.commit()

        logger.info("comment.created", comment_id=str(comment.id), task_id=str(task_id))
        self.broadcaster.publish(
            project_id, CommentCreated(comment=CommentRead.model_validate(comment))
        )
        return comment

    async def list_comments(self, user_id: uuid.UUID, task_id: uuid.UUID) -> list[Comment]:
        """Newest first."""
        await self.guard.check_member(user_id, task_id=task_id)
        result = await self.db.execute(
            select(Comment)
            .where(Comment.task_id == task_id)
            .order_by(Comment.created_at.desc())
        )
        return list(result.scalars().all())
