"""Room registry and broadcaster.

A room is the ephemeral set of connections that joined `project:{id}`.
Nothing here is persisted: after a restart rooms are empty and clients
rejoin. One RoomRegistry lives on each application instance
(`app.state.rooms`) and is shared by the ConnectionGateway (the only
writer, on join/disconnect) and the Broadcaster (the only reader).

Delivery is fire-and-forget. publish() hands the frame to every current
member's outbox synchronously and returns, so events published to one room
from this process reach each member in publish order. There is no
acknowledgement, no retry and no replay.
"""

import threading
import uuid
from typing import Any, Protocol

import structlog
from fastapi import Request

from taskhive.realtime.events import ProjectEvent, room_name

logger = structlog.get_logger()


class Subscriber(Protocol):
    """Anything that can sit in a room. Connection is the real one."""

    def deliver(self, message: dict[str, Any]) -> None: ...


class RoomRegistry:
    """Room name → set of subscribers, plus the reverse index for disconnect."""

    def __init__(self):
        self._rooms: dict[str, set[Subscriber]] = {}
        self._joined: dict[Subscriber, set[str]] = {}
        self._lock = threading.Lock()

    def join(self, room: str, subscriber: Subscriber) -> None:
        """Add `subscriber` to `room`. Joining twice is a no-op."""
        with self._lock:
            self._rooms.setdefault(room, set()).add(subscriber)
            self._joined.setdefault(subscriber, set()).add(room)

    def leave_all(self, subscriber: Subscriber) -> set[str]:
        """Remove `subscriber` from every room. Returns the rooms it was in."""
        with self._lock:
            rooms = self._joined.pop(subscriber, set())
            for room in rooms:
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.discard(subscriber)
                if not members:
                    del self._rooms[room]
            return rooms

    def members(self, room: str) -> list[Subscriber]:
        """Snapshot of the room's current members."""
        with self._lock:
            return list(self._rooms.get(room, ()))

    def rooms_of(self, subscriber: Subscriber) -> set[str]:
        with self._lock:
            return set(self._joined.get(subscriber, ()))

    def room_count(self) -> int:
        with self._lock:
            return len(self._rooms)


class Broadcaster:
    """Fans a typed event out to everyone in a project's room."""

    def __init__(self, rooms: RoomRegistry):
        self.rooms = rooms

    def publish(self, project_id: uuid.UUID | str, event: ProjectEvent) -> int:
        """Deliver `event` to every member of the project's room.

        Returns the number of members the frame was handed to. An empty
        room drops the event. A failing member is logged and skipped; the
        caller never sees realtime errors.
        """
        room = room_name(project_id)
        members = self.rooms.members(room)
        if not members:
            logger.debug("realtime.publish_dropped", room=room, event_type=event.event)
            return 0

        message = event.to_message()
        delivered = 0
        for member in members:
            try:
                member.deliver(message)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "realtime.delivery_failed",
                    room=room,
                    event_type=event.event,
                    error=str(e),
                )
        logger.debug(
            "realtime.published", room=room, event_type=event.event, recipients=delivered
        )
        return delivered


def get_broadcaster(request: Request) -> Broadcaster:
    """FastAPI dependency: the broadcaster bound to this app instance."""
    return request.app.state.broadcaster
