"""FastAPI application factory.

create_app() returns a configured FastAPI instance with its own realtime
state (room registry, broadcaster, gateway) on `app.state`, so every app
built in tests starts with empty rooms. Lifespan manages startup and
shutdown (logging, optional Redis, database engine).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskhive import __version__
from taskhive.api import api_router
from taskhive.config import settings
from taskhive.errors import InvalidInput, TaskhiveError
from taskhive.log_config import configure_logging
from taskhive.realtime.gateway import ConnectionGateway
from taskhive.realtime.rooms import Broadcaster, RoomRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(settings.log_level, settings.log_json)
    logger.info(
        "taskhive.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from taskhive.db.redis import close_redis, init_redis

    if settings.redis_url:
        try:
            await init_redis()
            logger.info("taskhive.redis_connected", url=settings.redis_url)
        except Exception as e:
            # Redis is optional; rate limiting is skipped without it
            logger.warning("taskhive.redis_unavailable", error=str(e))

    yield

    logger.info("taskhive.shutdown", rooms=app.state.rooms.room_count())
    await close_redis()

    from taskhive.db.engine import engine
    await engine.dispose()


# ── Error handlers ────────────────────────────────────────────


async def taskhive_error_handler(request: Request, exc: TaskhiveError) -> JSONResponse:
    content = {"detail": exc.detail}
    if isinstance(exc, InvalidInput) and exc.violations:
        content["errors"] = exc.violations
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error("taskhive.error", path=request.url.path, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Schema violations → 400 listing every offending field."""
    violations = []
    for err in exc.errors():
        # loc is ("body", "title") / ("query", "status"); drop the source
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        violations.append({
            "field": ".".join(loc) or "body",
            "message": err.get("msg", "Invalid value"),
        })
    return await taskhive_error_handler(request, InvalidInput(violations))


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Taskhive",
        description="Collaborative project boards with realtime project rooms",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Realtime state (one registry per app) ─────────────────
    rooms = RoomRegistry()
    app.state.rooms = rooms
    app.state.broadcaster = Broadcaster(rooms)
    app.state.gateway = ConnectionGateway(rooms)

    app.add_exception_handler(TaskhiveError, taskhive_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from taskhive.middleware.rate_limit import RateLimitMiddleware
    from taskhive.middleware.request_id import RequestIdMiddleware
    from taskhive.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from taskhive.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: taskhive.main:app)
app = create_app()
