"""Attachment service: file metadata on tasks.

Upload: validate → authorize (member) → store bytes → insert metadata →
broadcast `attachment:add`.

Delete is allowed for the uploader (even after leaving the project) or the
project owner. The room for the `attachment:remove` broadcast is resolved
again after the delete commits; if that lookup fails (the task vanished in
between) the delete still succeeds and the broadcast is skipped with a
warning.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.membership import MembershipGuard, is_owner
from taskhive.config import settings
from taskhive.db.models import Attachment
from taskhive.errors import Forbidden, InvalidInput, NotFound
from taskhive.realtime.events import AttachmentAdded, AttachmentRemoved
from taskhive.realtime.rooms import Broadcaster
from taskhive.schemas.comment import AttachmentRead
from taskhive.services.storage import AttachmentStorage, PlaceholderStorage

logger = structlog.get_logger()

DEFAULT_MIME_TYPE = "application/octet-stream"


class AttachmentService:
    def __init__(
        self,
        db: AsyncSession,
        broadcaster: Broadcaster,
        storage: Optional[AttachmentStorage] = None,
    ):
        self.db = db
        self.guard = MembershipGuard(db)
        self.broadcaster = broadcaster
        self.storage = storage or PlaceholderStorage(settings.upload_base_url)

    # ─── Upload ──────────────────────────────────────────

    async def create_attachment(
        self,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        filename: Optional[str],
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> Attachment:
        """Store an uploaded file and record it against the task.

        Raises:
            InvalidInput: missing filename and/or file over max_attachment_bytes
            NotFound: task does not exist
            Forbidden: caller is not a project member
        """
        violations = []
        if not filename:
            violations.append({"field": "file", "message": "Filename is required"})
        if len(content) > settings.max_attachment_bytes:
            violations.append({
                "field": "file",
                "message": f"File exceeds {settings.max_attachment_bytes} bytes",
            })
        if violations:
            raise InvalidInput(violations)

        project = await self.guard.check_member(user_id, task_id=task_id)
        project_id = project.id

        mime_type = mime_type or DEFAULT_MIME_TYPE
        url = await self.storage.save(filename, content, mime_type)
        attachment = Attachment(
            task_id=task_id,
            url=url,
            filename=filename,
            size=len(content),
            mime_type=mime_type,
            uploaded_by=user_id,
        )
        self.db.add(attachment)
        await self.db.commit()

        logger.info(
            "attachment.created",
            attachment_id=str(attachment.id),
            task_id=str(task_id),
            size=attachment.size,
        )
        self.broadcaster.publish(
            project_id, AttachmentAdded(attachment=AttachmentRead.model_validate(attachment))
        )
        return attachment

    # ─── Read ────────────────────────────────────────────

    async def list_attachments(
        self, user_id: uuid.UUID, task_id: uuid.UUID
    ) -> list[Attachment]:
        """Newest first."""
        await self.guard.check_member(user_id, task_id=task_id)
        result = await self.db.execute(
            select(Attachment)
            .where(Attachment.task_id == task_id)
            .order_by(Attachment.created_at.desc())
        )
        return list(result.scalars().all())

    # ─── Delete ──────────────────────────────────────────

    async def delete_attachment(self, user_id: uuid.UUID, attachment_id: uuid.UUID) -> None:
        attachment = await self.db.get(Attachment, attachment_id)
        if attachment is None:
            raise NotFound("Attachment not found")
        task_id = attachment.task_id

        # No membership check: an uploader who has left may still remove their file.
        project = await self.guard.load_project(await self.guard.resolve_project_id(task_id))
        if attachment.uploaded_by != user_id and not is_owner(project, user_id):
            raise Forbidden("Only the uploader or the project owner can delete this attachment")

        result = await self.db.execute(delete(Attachment).where(Attachment.id == attachment_id))
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFound("Attachment not found")
        await self.db.commit()
        logger.info("attachment.deleted", attachment_id=str(attachment_id), task_id=str(task_id))

        try:
            project_id = await self.guard.resolve_project_id(task_id)
        except NotFound:
            logger.warning(
                "attachment.broadcast_skipped",
                attachment_id=str(attachment_id),
                task_id=str(task_id),
                reason="task no longer exists",
            )
            return
        self.broadcaster.publish(project_id, AttachmentRemoved(attachment_id=attachment_id))
