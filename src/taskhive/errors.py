"""Error taxonomy shared by the guard, the services and the HTTP layer.

Services raise these; create_app() registers one handler that turns any
TaskhiveError into a JSON response with the matching status code. The
realtime layer only ever surfaces Unauthenticated (as a handshake rejection).
"""

from typing import Optional


class TaskhiveError(Exception):
    """Base class. `status_code` is the HTTP equivalent."""

    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(TaskhiveError):
    """Missing, malformed or expired token."""

    status_code = 401
    default_detail = "Authentication required"


class InvalidInput(TaskhiveError):
    """Schema or field violations. Carries every violation, not just the first."""

    status_code = 400
    default_detail = "Invalid input"

    def __init__(
        self,
        violations: Optional[list[dict]] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(detail)
        self.violations = violations or []

    @classmethod
    def field(cls, field: str, message: str) -> "InvalidInput":
        return cls([{"field": field, "message": message}])


class NotFound(TaskhiveError):
    status_code = 404
    default_detail = "Not found"


class Forbidden(TaskhiveError):
    """Authenticated, but not a member/owner of the target project."""

    status_code = 403
    default_detail = "Forbidden"


class ConflictInvite(TaskhiveError):
    """Invite code collided with an existing one.

    Raised and retried inside ProjectService; callers never see it unless
    every attempt collides.
    """

    status_code = 409
    default_detail = "Could not allocate a unique invite code"


class EmailTaken(TaskhiveError):
    status_code = 409
    default_detail = "Email already registered"
