"""Project API routes: projects, invites and membership.

Routes translate HTTP to ProjectService calls; the service raises
taskhive.errors, which the app-level handler turns into responses.
Membership changes are not broadcast.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.dependencies import CurrentIdentity, get_current_user
from taskhive.db.engine import get_db
from taskhive.schemas.project import JoinRequest, ProjectCreate, ProjectRead, ProjectUpdate
from taskhive.services.project_service import ProjectService

router = APIRouter()


def _project_svc(db: AsyncSession = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


@router.get("/projects", response_model=list[ProjectRead])
async def list_projects(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    """Projects the caller owns or has joined."""
    return await svc.list_projects(identity.user_id)


@router.post("/projects", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    """Create a project. The caller becomes its owner."""
    return await svc.create_project(identity.user_id, body)


@router.post("/projects/join", response_model=ProjectRead)
async def join_project(
    body: JoinRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    """Join a project with its invite code. Joining twice is a no-op."""
    return await svc.join(identity.user_id, body.invite_code)


@router.get("/projects/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    return await svc.get_project(identity.user_id, project_id)


@router.patch("/projects/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    """Owner-only: rename, redescribe or reschedule the project."""
    return await svc.update_project(identity.user_id, project_id, body)


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    """Owner-only: delete the project and everything in it."""
    await svc.delete_project(identity.user_id, project_id)
    return {"deleted": True}


@router.post("/projects/{project_id}/leave")
async def leave_project(
    project_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ProjectService = Depends(_project_svc),
):
    await svc.leave(identity.user_id, project_id)
    return {"ok": True}
