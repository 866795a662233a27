"""API route aggregation.

All routers registered here get mounted in main.py.

Auth is applied at the include_router level using FastAPI's dependencies
parameter, so every protected route rejects a missing or invalid access
token before its handler runs. Health and auth routers are open.
"""

from fastapi import APIRouter, Depends

from taskhive.api.attachments import router as attachments_router
from taskhive.api.auth import router as auth_router
from taskhive.api.comments import router as comments_router
from taskhive.api.health import router as health_router
from taskhive.api.projects import router as projects_router
from taskhive.api.tasks import router as tasks_router
from taskhive.api.users import router as users_router
from taskhive.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes: a valid access token is required
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(projects_router, tags=["projects"], dependencies=_auth)
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
api_router.include_router(comments_router, tags=["comments"], dependencies=_auth)
api_router.include_router(attachments_router, tags=["attachments"], dependencies=_auth)
