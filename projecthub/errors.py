"""
projecthub/errors.py

Error taxonomy shared by the authorization core and the route modules.

Pure Python - no FastAPI imports. main.py renders every ProjectHubError as
{"error": message, "details": details} with the class status code.
"""

from __future__ import annotations

from typing import Optional


class ProjectHubError(Exception):
    """Base error; carries the HTTP status the API maps it to."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(ProjectHubError):
    """No credential, malformed credential, or failed login."""
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ProjectHubError):
    """Authenticated but not allowed. `details` holds a stable reason string."""
    status_code = 403
    default_message = "Forbidden"

    @property
    def reason(self) -> Optional[str]:
        return self.details


class TokenError(ProjectHubError):
    """Token codec failure."""
    status_code = 403
    default_message = "Invalid or expired token"


class TokenInvalid(TokenError):
    default_message = "Invalid token"


class TokenExpired(TokenError):
    default_message = "Token expired"


class NotFound(ProjectHubError):
    """Absent or owned by another tenant; callers cannot tell which."""
    status_code = 404
    default_message = "Not found"


class ValidationFailed(ProjectHubError):
    status_code = 400
    default_message = "Validation failed"


class CrossTenantReference(ProjectHubError):
    """A foreign key points at a record of another company (or nowhere)."""
    status_code = 400
    default_message = "Referenced record does not belong to this company"


class SeatLimitExceeded(ProjectHubError):
    status_code = 403
    default_message = "Seat limit reached"

    def __init__(self, role: str, limit: int):
        self.role = role
        self.limit = limit
        super().__init__(
            f"Seat limit reached: this company allows a maximum of {limit} {role} user(s)",
            details=f"seat_limit:{role}:{limit}",
        )


class Conflict(ProjectHubError):
    status_code = 409
    default_message = "Conflict"


class EmailTaken(Conflict):
    default_message = "A user with this email already exists"

    def __init__(self):
        super().__init__(details="email_taken")
