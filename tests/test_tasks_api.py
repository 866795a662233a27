"""Task tests: CRUD, authorization and realtime fan-out.

Every successful mutation must put exactly one event in the project's
room; every failed one (NotFound / Forbidden / InvalidInput) none.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest


def _tasks_url(project):
    return f"/api/v1/projects/{project['id']}/tasks"


async def _create(client, project, account, **fields):
    body = {"title": "Fix bug", **fields}
    r = await client.post(_tasks_url(project), json=body, headers=account.headers)
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_task_defaults(client, project_with_member):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])
    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["project_id"] == project["id"]
    assert task["assignee_id"] is None
    assert task["order"] == 0


@pytest.mark.asyncio
async def test_create_task_broadcasts_once(client, project_with_member, listen):
    project = project_with_member["project"]
    room = listen(project["id"])

    task = await _create(client, project, project_with_member["member"])

    assert room.events == ["task:create"]
    assert room.messages[0]["data"]["task"] == task


@pytest.mark.asyncio
async def test_refetch_matches_broadcast_timestamps(client, project_with_member, listen):
    project = project_with_member["project"]
    x = project_with_member["owner"]
    room = listen(project["id"])

    task = await _create(client, project, x, due_date="2026-03-01T12:00:00+02:00")
    r = await client.get(f"/api/v1/tasks/{task['id']}", headers=x.headers)

    assert r.json() == room.messages[0]["data"]["task"]
    due = datetime.fromisoformat(r.json()["due_date"])
    assert due == datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert due.utcoffset() == timedelta(0)


@pytest.mark.asyncio
async def test_outsider_cannot_create(client, project_with_member, listen):
    project = project_with_member["project"]
    room = listen(project["id"])

    r = await client.post(
        _tasks_url(project),
        json={"title": "Sneaky"},
        headers=project_with_member["outsider"].headers,
    )
    assert r.status_code == 403
    assert room.messages == []


@pytest.mark.asyncio
async def test_invalid_task_reports_all_fields(client, project_with_member, listen):
    project = project_with_member["project"]
    room = listen(project["id"])

    r = await client.post(
        _tasks_url(project),
        json={"title": "", "status": "blocked", "priority": "urgent", "order": -1},
        headers=project_with_member["owner"].headers,
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert fields == {"title", "status", "priority", "order"}
    assert room.messages == []


@pytest.mark.asyncio
async def test_create_in_missing_project(client, make_user):
    x = await make_user("Owner")
    r = await client.post(
        f"/api/v1/projects/{uuid.uuid4()}/tasks", json={"title": "x"}, headers=x.headers
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_create_requires_auth(client, project_with_member):
    r = await client.post(_tasks_url(project_with_member["project"]), json={"title": "x"})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Read
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_tasks_board_order(client, project_with_member):
    project = project_with_member["project"]
    x = project_with_member["owner"]
    c = await _create(client, project, x, title="C", order=2)
    a = await _create(client, project, x, title="A", order=0)
    b = await _create(client, project, x, title="B", order=1)

    r = await client.get(_tasks_url(project), headers=x.headers)
    assert r.status_code == 200
    assert [t["id"] for t in r.json()] == [a["id"], b["id"], c["id"]]


@pytest.mark.asyncio
async def test_list_tasks_filters(client, project_with_member):
    project = project_with_member["project"]
    x = project_with_member["owner"]
    y = project_with_member["member"]
    mine = await _create(client, project, x, title="Mine", assignee_id=str(y.id))
    await _create(client, project, x, title="Done", status="done")

    r = await client.get(
        _tasks_url(project), params={"assignee_id": str(y.id)}, headers=x.headers
    )
    assert [t["id"] for t in r.json()] == [mine["id"]]

    r = await client.get(_tasks_url(project), params={"status": "done"}, headers=x.headers)
    assert [t["title"] for t in r.json()] == ["Done"]

    r = await client.get(_tasks_url(project), params={"status": "nope"}, headers=x.headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_get_task_outsider_forbidden(client, project_with_member):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])

    r = await client.get(
        f"/api/v1/tasks/{task['id']}", headers=project_with_member["outsider"].headers
    )
    assert r.status_code == 403

    r = await client.get(
        f"/api/v1/tasks/{task['id']}", headers=project_with_member["member"].headers
    )
    assert r.status_code == 200
    assert r.json()["id"] == task["id"]


# ═══════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_member_updates_any_task(client, project_with_member, listen):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])
    room = listen(project["id"])

    r = await client.patch(
        f"/api/v1/tasks/{task['id']}",
        json={"title": "Fix bug properly", "priority": "high"},
        headers=project_with_member["member"].headers,
    )
    assert r.status_code == 200
    updated = r.json()
    assert updated["title"] == "Fix bug properly"
    assert updated["priority"] == "high"
    assert updated["status"] == "todo"

    assert room.events == ["task:update"]
    assert room.messages[0]["data"]["task"]["title"] == "Fix bug properly"


@pytest.mark.asyncio
async def test_update_can_clear_assignee(client, project_with_member):
    project = project_with_member["project"]
    x = project_with_member["owner"]
    task = await _create(client, project, x, assignee_id=str(x.id))

    r = await client.patch(
        f"/api/v1/tasks/{task['id']}", json={"assignee_id": None}, headers=x.headers
    )
    assert r.status_code == 200
    assert r.json()["assignee_id"] is None


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(client, project_with_member, listen):
    project = project_with_member["project"]
    x = project_with_member["owner"]
    task = await _create(client, project, x, title="Keep me")
    room = listen(project["id"])

    r = await client.patch(
        f"/api/v1/tasks/{task['id']}",
        json={"title": None, "status": None, "priority": None, "order": None},
        headers=x.headers,
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert fields == {"title", "status", "priority", "order"}
    assert room.events == []

    r = await client.get(f"/api/v1/tasks/{task['id']}", headers=x.headers)
    assert r.json()["title"] == "Keep me"


@pytest.mark.asyncio
async def test_update_missing_task(client, project_with_member, listen):
    room = listen(project_with_member["project"]["id"])
    r = await client.patch(
        f"/api/v1/tasks/{uuid.uuid4()}",
        json={"title": "Ghost"},
        headers=project_with_member["owner"].headers,
    )
    assert r.status_code == 404
    assert room.messages == []


@pytest.mark.asyncio
async def test_status_change_broadcasts_narrow_event(client, project_with_member, listen):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])
    room = listen(project["id"])

    r = await client.patch(
        f"/api/v1/tasks/{task['id']}/status",
        json={"status": "in_progress"},
        headers=project_with_member["member"].headers,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"

    assert room.messages == [
        {"event": "task:status", "data": {"taskId": task["id"], "status": "in_progress"}}
    ]


@pytest.mark.asyncio
async def test_status_change_allows_any_transition(client, project_with_member):
    project = project_with_member["project"]
    x = project_with_member["owner"]
    task = await _create(client, project, x, status="done")

    r = await client.patch(
        f"/api/v1/tasks/{task['id']}/status", json={"status": "todo"}, headers=x.headers
    )
    assert r.status_code == 200
    assert r.json()["status"] == "todo"


@pytest.mark.asyncio
async def test_status_change_rejects_unknown_status(client, project_with_member, listen):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])
    room = listen(project["id"])

    r = await client.patch(
        f"/api/v1/tasks/{task['id']}/status",
        json={"status": "blocked"},
        headers=project_with_member["owner"].headers,
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "status"
    assert room.messages == []


# ═══════════════════════════════════════════════════════════
# Delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_delete_task(client, project_with_member, listen):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])
    room = listen(project["id"])

    r = await client.delete(
        f"/api/v1/tasks/{task['id']}", headers=project_with_member["member"].headers
    )
    assert r.status_code == 200
    assert room.messages == [{"event": "task:delete", "data": {"taskId": task["id"]}}]

    r = await client.get(
        f"/api/v1/tasks/{task['id']}", headers=project_with_member["owner"].headers
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_missing_task_is_an_error(client, project_with_member, listen):
    room = listen(project_with_member["project"]["id"])
    r = await client.delete(
        f"/api/v1/tasks/{uuid.uuid4()}", headers=project_with_member["owner"].headers
    )
    assert r.status_code == 404
    assert room.messages == []


@pytest.mark.asyncio
async def test_outsider_cannot_delete(client, project_with_member, listen):
    project = project_with_member["project"]
    task = await _create(client, project, project_with_member["owner"])
    room = listen(project["id"])

    r = await client.delete(
        f"/api/v1/tasks/{task['id']}", headers=project_with_member["outsider"].headers
    )
    assert r.status_code == 403
    assert room.messages == []


@pytest.mark.asyncio
async def test_events_stay_in_their_room(client, project_with_member, make_user, listen):
    other_owner = await make_user("Other")
    r = await client.post("/api/v1/projects", json={"name": "Other"}, headers=other_owner.headers)
    other = r.json()

    room_a = listen(project_with_member["project"]["id"])
    room_b = listen(other["id"])

    await _create(client, other, other_owner, title="Elsewhere")

    assert room_a.messages == []
    assert room_b.events == ["task:create"]
