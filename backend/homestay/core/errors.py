"""Business error taxonomy.

Services raise these; ``homestay.main`` renders them with the
``{"success": false, "error": ...}`` envelope and the status code below.
"""

from fastapi import status


class HomestayError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(HomestayError):
    """Malformed or out-of-range input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(HomestayError):
    """Overlapping reservation, illegal state transition or duplicate key."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request conflicts with current state"


class NotFoundError(HomestayError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class AuthenticationError(HomestayError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class AuthorizationError(HomestayError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class UnexpectedError(HomestayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
