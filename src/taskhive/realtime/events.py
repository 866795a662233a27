"""Realtime event catalogue: a closed tagged union.

Every frame on the wire is an envelope:

    {"event": "<name>", "data": {...payload...}}

Server → client events published into a project room:

    task:create        {task}
    task:update        {task}
    task:status        {taskId, status}
    task:delete        {taskId}
    comment:create     {comment}
    attachment:add     {attachment}
    attachment:remove  {attachmentId}

plus `connected {ok}`, sent only to a freshly authenticated connection.
Entity payloads are the same *Read schemas the HTTP API returns.
"""

import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from taskhive.schemas.comment import AttachmentRead, CommentRead
from taskhive.schemas.task import TaskRead

# ─── Event names ─────────────────────────────────────────

CONNECTED = "connected"
TASK_CREATE = "task:create"
TASK_UPDATE = "task:update"
TASK_STATUS = "task:status"
TASK_DELETE = "task:delete"
COMMENT_CREATE = "comment:create"
ATTACHMENT_ADD = "attachment:add"
ATTACHMENT_REMOVE = "attachment:remove"

# Client → server
PROJECT_JOIN = "project:join"
PING = "ping"
PONG = "pong"


def room_name(project_id: uuid.UUID | str) -> str:
    """Room key for a project's broadcast group."""
    return f"project:{project_id}"


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_message(self) -> dict[str, Any]:
        """Serialize to the wire envelope."""
        return {
            "event": self.event,
            "data": self.model_dump(mode="json", by_alias=True, exclude={"event"}),
        }


class Connected(_Event):
    event: Literal["connected"] = CONNECTED
    ok: bool = True


class TaskCreated(_Event):
    event: Literal["task:create"] = TASK_CREATE
    task: TaskRead


class TaskUpdated(_Event):
    event: Literal["task:update"] = TASK_UPDATE
    task: TaskRead


class TaskStatusChanged(_Event):
    event: Literal["task:status"] = TASK_STATUS
    task_id: uuid.UUID = Field(alias="taskId")
    status: str


class TaskDeleted(_Event):
    event: Literal["task:delete"] = TASK_DELETE
    task_id: uuid.UUID = Field(alias="taskId")


class CommentCreated(_Event):
    event: Literal["comment:create"] = COMMENT_CREATE
    comment: CommentRead


class AttachmentAdded(_Event):
    event: Literal["attachment:add"] = ATTACHMENT_ADD
    attachment: AttachmentRead


class AttachmentRemoved(_Event):
    event: Literal["attachment:remove"] = ATTACHMENT_REMOVE
    attachment_id: uuid.UUID = Field(alias="attachmentId")


ProjectEvent = Annotated[
    Union[
        TaskCreated,
        TaskUpdated,
        TaskStatusChanged,
        TaskDeleted,
        CommentCreated,
        AttachmentAdded,
        AttachmentRemoved,
    ],
    Field(discriminator="event"),
]

_project_event_adapter = TypeAdapter(ProjectEvent)


def parse_message(message: dict[str, Any]) -> ProjectEvent:
    """Rebuild a typed event from a wire envelope (client side of the channel)."""
    return _project_event_adapter.validate_python(
        {"event": message.get("event"), **(message.get("data") or {})}
    )


# ─── Client → server ─────────────────────────────────────


class JoinProject(BaseModel):
    """Payload of `project:join`."""
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId", min_length=1, max_length=100)
