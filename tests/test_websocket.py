"""End-to-end realtime flows over /ws with Starlette's TestClient.

A `ping` sent after a `project:join` doubles as a barrier: frames from one
connection are handled in order, so once the `pong` arrives the join has
taken effect.
"""

import uuid

import pytest
from starlette.websockets import WebSocketDisconnect

from taskhive.auth.jwt import create_access_token, create_refresh_token
from taskhive.realtime.events import room_name
from taskhive.realtime.websocket import REJECT_CODE

CONNECTED = {"event": "connected", "data": {"ok": True}}


def _join(ws, project_id):
    ws.send_json({"event": "project:join", "data": {"projectId": project_id}})
    ws.send_json({"event": "ping", "data": {}})
    assert ws.receive_json() == {"event": "pong", "data": {}}


def _barrier(ws):
    """Nothing else is queued for this connection if the next frame is pong."""
    ws.send_json({"event": "ping", "data": {}})
    assert ws.receive_json()["event"] == "pong"


def _sprint(tc, register):
    x, y, z = register(tc, "Xavier"), register(tc, "Yara"), register(tc, "Zed")
    project = tc.post("/api/v1/projects", json={"name": "Sprint"}, headers=x.headers).json()
    r = tc.post(
        "/api/v1/projects/join",
        json={"invite_code": project["invite_code"]},
        headers=y.headers,
    )
    assert r.status_code == 200
    assert str(y.id) in r.json()["member_ids"]
    return x, y, z, project


# ═══════════════════════════════════════════════════════════
# Handshake
# ═══════════════════════════════════════════════════════════


def test_connect_with_query_token(sync_client, register):
    x = register(sync_client, "Xavier")
    with sync_client.websocket_connect(f"/ws?token={x.token}") as ws:
        assert ws.receive_json() == CONNECTED


def test_connect_with_bearer_header(sync_client, register):
    x = register(sync_client, "Xavier")
    with sync_client.websocket_connect("/ws", headers=x.headers) as ws:
        assert ws.receive_json() == CONNECTED


@pytest.mark.parametrize("query", ["", "?token=garbage"])
def test_missing_or_invalid_token_rejected(sync_client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with sync_client.websocket_connect(f"/ws{query}") as ws:
            ws.receive_json()
    assert exc.value.code == REJECT_CODE


def test_rejection_is_a_close_frame_after_the_handshake(sync_client):
    # The handshake itself succeeds; the first frame is the 4001 close.
    with sync_client.websocket_connect("/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
    assert exc.value.code == REJECT_CODE
    assert exc.value.reason == "Token not provided"
    assert sync_client.app.state.rooms.room_count() == 0


def test_refresh_token_rejected(sync_client, register):
    x = register(sync_client, "Xavier")
    with pytest.raises(WebSocketDisconnect) as exc:
        with sync_client.websocket_connect(f"/ws?token={create_refresh_token(str(x.id))}") as ws:
            ws.receive_json()
    assert exc.value.code == REJECT_CODE


def test_expired_token_rejected_before_any_join(sync_client, register):
    """Scenario: expired token → rejected, no greeting, no rooms."""
    x = register(sync_client, "Xavier")
    expired = create_access_token(str(x.id), expires_minutes=-1)

    with pytest.raises(WebSocketDisconnect) as exc:
        with sync_client.websocket_connect(f"/ws?token={expired}") as ws:
            ws.receive_json()
    assert exc.value.code == REJECT_CODE
    assert sync_client.app.state.rooms.room_count() == 0


# ═══════════════════════════════════════════════════════════
# Scenarios
# ═══════════════════════════════════════════════════════════


def test_task_create_reaches_owner_and_member(sync_client, register):
    """Scenario: X creates a task; X and Y (joined to the room) both see it;
    outsider Z is refused and nothing is broadcast for the attempt."""
    x, y, z, project = _sprint(sync_client, register)

    with sync_client.websocket_connect(f"/ws?token={x.token}") as ws_x, \
            sync_client.websocket_connect(f"/ws?token={y.token}") as ws_y:
        for ws in (ws_x, ws_y):
            assert ws.receive_json() == CONNECTED
            _join(ws, project["id"])

        r = sync_client.post(
            f"/api/v1/projects/{project['id']}/tasks",
            json={"title": "Fix bug"},
            headers=x.headers,
        )
        assert r.status_code == 201
        task = r.json()
        assert task["status"] == "todo"

        for ws in (ws_x, ws_y):
            assert ws.receive_json() == {"event": "task:create", "data": {"task": task}}

        r = sync_client.post(
            f"/api/v1/projects/{project['id']}/tasks",
            json={"title": "Intrusion"},
            headers=z.headers,
        )
        assert r.status_code == 403
        for ws in (ws_x, ws_y):
            _barrier(ws)


def test_status_change_sends_task_status(sync_client, register):
    """Scenario: Y moves the task via the status endpoint → `task:status`, not `task:update`."""
    x, y, _, project = _sprint(sync_client, register)
    task = sync_client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"title": "Fix bug"},
        headers=x.headers,
    ).json()

    with sync_client.websocket_connect(f"/ws?token={x.token}") as ws_x:
        assert ws_x.receive_json() == CONNECTED
        _join(ws_x, project["id"])

        r = sync_client.patch(
            f"/api/v1/tasks/{task['id']}/status",
            json={"status": "in_progress"},
            headers=y.headers,
        )
        assert r.status_code == 200
        assert ws_x.receive_json() == {
            "event": "task:status",
            "data": {"taskId": task["id"], "status": "in_progress"},
        }


def test_attachment_delete_authorization(sync_client, register):
    """Scenario: Y cannot delete X's attachment; owner X can, and the room hears it."""
    x, y, _, project = _sprint(sync_client, register)
    task = sync_client.post(
        f"/api/v1/projects/{project['id']}/tasks",
        json={"title": "Design doc"},
        headers=x.headers,
    ).json()
    attachment = sync_client.post(
        f"/api/v1/tasks/{task['id']}/attachments",
        files={"file": ("design.pdf", b"%PDF-1.4", "application/pdf")},
        headers=x.headers,
    ).json()

    with sync_client.websocket_connect(f"/ws?token={y.token}") as ws_y:
        assert ws_y.receive_json() == CONNECTED
        _join(ws_y, project["id"])

        r = sync_client.delete(f"/api/v1/attachments/{attachment['id']}", headers=y.headers)
        assert r.status_code == 403
        _barrier(ws_y)

        r = sync_client.delete(f"/api/v1/attachments/{attachment['id']}", headers=x.headers)
        assert r.status_code == 200
        assert ws_y.receive_json() == {
            "event": "attachment:remove",
            "data": {"attachmentId": attachment["id"]},
        }


def test_rooms_are_isolated(sync_client, register):
    x, _, _, sprint = _sprint(sync_client, register)
    other = sync_client.post(
        "/api/v1/projects", json={"name": "Other"}, headers=x.headers
    ).json()

    with sync_client.websocket_connect(f"/ws?token={x.token}") as ws:
        assert ws.receive_json() == CONNECTED
        _join(ws, sprint["id"])

        sync_client.post(
            f"/api/v1/projects/{other['id']}/tasks", json={"title": "Elsewhere"}, headers=x.headers
        )
        _barrier(ws)


def test_disconnect_leaves_rooms(sync_client, register):
    x, y, _, project = _sprint(sync_client, register)
    rooms = sync_client.app.state.rooms
    room = room_name(project["id"])

    with sync_client.websocket_connect(f"/ws?token={x.token}") as ws_x:
        assert ws_x.receive_json() == CONNECTED
        _join(ws_x, project["id"])

        with sync_client.websocket_connect(f"/ws?token={y.token}") as ws_y:
            assert ws_y.receive_json() == CONNECTED
            _join(ws_y, project["id"])
            assert len(rooms.members(room)) == 2

        assert len(rooms.members(room)) == 1

        r = sync_client.post(
            f"/api/v1/projects/{project['id']}/tasks", json={"title": "After"}, headers=x.headers
        )
        assert r.status_code == 201
        assert ws_x.receive_json()["event"] == "task:create"

    assert rooms.room_count() == 0


def test_join_any_project_room_is_allowed(sync_client, register):
    """Room joins are not membership-checked; writes still are."""
    x, _, z, project = _sprint(sync_client, register)

    with sync_client.websocket_connect(f"/ws?token={z.token}") as ws_z:
        assert ws_z.receive_json() == CONNECTED
        _join(ws_z, project["id"])

        sync_client.post(
            f"/api/v1/projects/{project['id']}/tasks", json={"title": "Visible"}, headers=x.headers
        )
        assert ws_z.receive_json()["event"] == "task:create"


def test_unknown_project_id_is_just_a_room(sync_client, register):
    x = register(sync_client, "Xavier")
    with sync_client.websocket_connect(f"/ws?token={x.token}") as ws:
        assert ws.receive_json() == CONNECTED
        _join(ws, str(uuid.uuid4()))
        _barrier(ws)
