class ServiceError(Exception):
    """Base for failures that map onto an HTTP status and a JSON error body."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.message}


class ValidationError(ServiceError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(ServiceError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "Access denied. Administrators only."


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


# Duplicates are reported as 400 by the public API.
class ConflictError(ServiceError):
    status_code = 400
    default_message = "Already exists"
