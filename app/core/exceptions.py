"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ConflictException(AppException):
    """Requested slot or resource is already taken."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ConstraintViolationException(ConflictException):
    """The store rejected a write because of a storage-level constraint."""

    def __init__(self, message: str = "Constraint violation"):
        """Initialize with 409 status code."""
        super().__init__(message)


class InvalidTransitionException(AppException):
    """Requested status change is not allowed by the appointment lifecycle."""

    def __init__(self, message: str = "Invalid status transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class UpstreamException(AppException):
    """The database or another backing service failed or is unreachable."""

    def __init__(self, message: str = "Upstream service unavailable"):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502)
