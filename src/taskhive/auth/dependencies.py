"""FastAPI auth dependencies.

These are used as Depends() in route handlers to extract and validate the
current identity from the `Authorization: Bearer <access token>` header.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header

from taskhive.auth.jwt import TokenError, subject_from_token
from taskhive.errors import Unauthenticated


class CurrentIdentity:
    """The authenticated subject making the request.

    Carries only the user id extracted from a verified token; everything
    else (membership, ownership) is re-read per request by the guard.
    """

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id})"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer ...` header value."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity, or None if no Authorization header was sent.

    A present-but-invalid token is still an error: only a missing header
    yields None.
    """
    token = bearer_token(authorization)
    if token is None:
        return None
    return _authenticate_jwt(token)


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity; 401 if there is none."""
    if not identity:
        raise Unauthenticated()
    return identity


def _authenticate_jwt(token: str) -> CurrentIdentity:
    try:
        return CurrentIdentity(user_id=subject_from_token(token))
    except TokenError as e:
        raise Unauthenticated(str(e))
