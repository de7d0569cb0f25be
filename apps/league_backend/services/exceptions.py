"""
Error taxonomy shared by the service layer.

Services raise these; routes translate them to HTTP status codes. Messages
are user-facing and displayed verbatim.
"""


class ValidationError(ValueError):
    """Malformed input (name, email, player count). Raised before any write."""


class AuthorizationError(PermissionError):
    """Caller is unauthenticated or not allowed to perform the action."""


class ConflictError(ValueError):
    """Request collides with existing state (duplicate join, weekly overlap, double response)."""


class NotFoundError(ValueError):
    """Referenced team, session, registration or invite does not exist."""
