"""Auth API: registration, login and token exchange.

- POST /auth/register → create a user, returns the user + token pair
- POST /auth/login → email/password → user + token pair
- POST /auth/refresh → refresh token → new token pair
- POST /auth/logout → stateless; the client drops its tokens
- GET /auth/me → current user info
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.auth.dependencies import CurrentIdentity, get_current_user
from taskhive.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from taskhive.auth.password import hash_password, verify_password
from taskhive.db.engine import get_db
from taskhive.db.models import User
from taskhive.errors import EmailTaken, NotFound, Unauthenticated
from taskhive.schemas.user import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserRead,
)

router = APIRouter(prefix="/auth")


def _issue(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserRead.model_validate(user),
        access_token=create_access_token(str(user.id)),
        refresh_token=create_refresh_token(str(user.id)),
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account and sign it in."""
    email = body.email.strip().lower()
    result = await db.execute(select(User.id).where(User.email == email))
    if result.first():
        raise EmailTaken()

    user = User(
        email=email,
        name=body.name,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise EmailTaken()
    return _issue(user)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password → JWT tokens."""
    result = await db.execute(select(User).where(User.email == body.email.strip().lower()))
    user = result.scalars().first()

    if not user or not verify_password(body.password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    return _issue(user)


# ─── Refresh / logout ───────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new token pair."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
        user_id = uuid.UUID(str(payload.get("sub")))
    except TokenError as e:
        raise Unauthenticated(str(e))
    except ValueError:
        raise Unauthenticated("Invalid token: malformed subject")

    if await db.get(User, user_id) is None:
        raise Unauthenticated("User no longer exists")

    return TokenResponse(
        access_token=create_access_token(str(user_id)),
        refresh_token=create_refresh_token(str(user_id)),
    )


@router.post("/logout")
async def logout():
    return {"ok": True}


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current authenticated user's info."""
    user = await db.get(User, identity.user_id)
    if not user:
        raise NotFound("User not found")
    return user
