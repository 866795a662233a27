"""JWT token creation and verification.

- Access token: short-lived (15min), used for API calls and the WebSocket
  handshake
- Refresh token: long-lived (7 days), only exchanged for new tokens

The `type` claim keeps the two apart: a refresh token never authenticates
a request or a realtime connection.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from taskhive.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(
    user_id: str,
    expires_days: Optional[int] = None,
) -> str:
    """Create a JWT refresh token."""
    expires = datetime.now(timezone.utc) + timedelta(
        days=expires_days or settings.refresh_token_expire_days
    )
    payload = {
        "sub": user_id,
        "type": "refresh",
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: Optional[str] = None) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure, or when `expected_type` is given and the
    token's `type` claim differs.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if expected_type and payload.get("type") != expected_type:
        raise TokenError(f"Expected a {expected_type} token")
    return payload


def subject_from_token(token: str) -> uuid.UUID:
    """Verify an access token and return its subject (user id).

    This is the single verification primitive shared by the HTTP auth
    dependency and the realtime handshake.
    """
    payload = verify_token(token, expected_type="access")
    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise TokenError("Invalid token: malformed subject")
