"""ConnectionGateway: authenticated realtime sessions and room joins.

Per-connection state machine:

    CONNECTING ──token ok──▶ AUTHENTICATED ──disconnect──▶ CLOSED
        │                        │
        └──token bad──▶ REJECTED └─ project:join adds rooms

- The token comes with the handshake, never as a later message. A missing,
  invalid or expired token rejects the connection before any session
  exists: no greeting, no rooms, no events.
- `project:join` is the only mutating client message. It is accepted
  without a membership check; a room only grants eligibility to *receive*
  events, while every write is re-authorized by the MembershipGuard.
- Disconnect is immediate and final: the connection leaves every room and
  anything still queued for it is discarded.

The gateway is transport-agnostic; realtime.websocket binds it to a
Starlette WebSocket.
"""

import asyncio
import enum
import json
import uuid
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from taskhive.auth.jwt import TokenError, subject_from_token
from taskhive.errors import Unauthenticated
from taskhive.realtime.events import (
    PING,
    PONG,
    PROJECT_JOIN,
    Connected,
    JoinProject,
    room_name,
)
from taskhive.realtime.rooms import RoomRegistry

logger = structlog.get_logger()


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    CLOSED = "closed"


class Connection:
    """One realtime session.

    Frames are queued in a bounded outbox and written by a single sender
    task (`run_sender`), so publishing never waits on a slow client and
    frames reach the client in the order they were delivered here.
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]],
        outbox_size: int = 256,
    ):
        self.id = uuid.uuid4().hex
        self.subject_id: Optional[uuid.UUID] = None
        self.state = ConnectionState.CONNECTING
        self._send = send
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=outbox_size)

    def __repr__(self) -> str:
        return f"Connection(id={self.id}, subject={self.subject_id}, state={self.state.value})"

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    def deliver(self, message: dict[str, Any]) -> None:
        """Queue a frame. Silently ignored unless the connection is authenticated."""
        if not self.is_open:
            return
        try:
            self._outbox.put_nowait(json.dumps(message))
        except asyncio.QueueFull:
            logger.warning(
                "realtime.outbox_full",
                connection_id=self.id,
                event_type=message.get("event"),
            )

    async def run_sender(self) -> None:
        """Drain the outbox into the transport until closed or the send fails."""
        while True:
            frame = await self._outbox.get()
            if not self.is_open:
                return
            await self._send(frame)

    def pending(self) -> int:
        return self._outbox.qsize()

    def close(self) -> None:
        self.state = ConnectionState.CLOSED
        while not self._outbox.empty():
            self._outbox.get_nowait()


class ConnectionGateway:
    """Authenticates connections and manages their room memberships."""

    def __init__(
        self,
        rooms: RoomRegistry,
        verify: Callable[[str], uuid.UUID] = subject_from_token,
    ):
        self.rooms = rooms
        self._verify = verify

    # ─── Handshake ───────────────────────────────────────

    def authenticate(self, connection: Connection, token: Optional[str]) -> uuid.UUID:
        """Verify the handshake token and move the connection out of CONNECTING.

        Raises:
            Unauthenticated: token missing or invalid (connection → REJECTED)
        """
        if connection.state != ConnectionState.CONNECTING:
            raise RuntimeError(f"Cannot authenticate a {connection.state.value} connection")

        if not token:
            connection.state = ConnectionState.REJECTED
            raise Unauthenticated("Token not provided")
        try:
            subject_id = self._verify(token)
        except TokenError as e:
            connection.state = ConnectionState.REJECTED
            raise Unauthenticated(str(e))

        connection.subject_id = subject_id
        connection.state = ConnectionState.AUTHENTICATED
        connection.deliver(Connected(ok=True).to_message())
        logger.info(
            "realtime.connected", connection_id=connection.id, user_id=str(subject_id)
        )
        return subject_id

    # ─── Client messages ─────────────────────────────────

    def handle_message(self, connection: Connection, raw: str) -> None:
        """Dispatch one client frame. Bad frames are logged and dropped."""
        if not connection.is_open:
            return
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("realtime.invalid_json", connection_id=connection.id)
            return
        if not isinstance(msg, dict):
            logger.warning("realtime.invalid_frame", connection_id=connection.id)
            return

        event = msg.get("event")
        if event == PROJECT_JOIN:
            try:
                body = JoinProject.model_validate(msg.get("data") or {})
            except ValidationError as e:
                logger.warning(
                    "realtime.invalid_join",
                    connection_id=connection.id,
                    errors=e.error_count(),
                )
                return
            self.join(connection, body.project_id)
        elif event == PING:
            connection.deliver({"event": PONG, "data": {}})
        else:
            logger.debug("realtime.unknown_event", connection_id=connection.id, event=event)

    def join(self, connection: Connection, project_id: uuid.UUID | str) -> Optional[str]:
        """Put an authenticated connection into a project's room.

        Returns the room name, or None if the connection is not authenticated.
        """
        if not connection.is_open:
            return None
        room = room_name(_normalize_project_id(project_id))
        self.rooms.join(room, connection)
        logger.info("realtime.joined", connection_id=connection.id, room=room)
        return room

    # ─── Teardown ────────────────────────────────────────

    def disconnect(self, connection: Connection) -> None:
        """Remove the connection from every room and discard queued frames."""
        connection.close()
        rooms = self.rooms.leave_all(connection)
        logger.info(
            "realtime.disconnected", connection_id=connection.id, rooms=len(rooms)
        )


def _normalize_project_id(project_id: uuid.UUID | str) -> str:
    """Canonical room key: UUIDs in their standard lower-case form."""
    try:
        return str(uuid.UUID(str(project_id)))
    except ValueError:
        return str(project_id)
