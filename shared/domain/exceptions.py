"""
Domain Errors

Every failure the core can report is one of these types. Views map the
``status_code`` to an HTTP response; state transitions return them inside a
result value instead of raising.
"""


class DomainError(Exception):
    """Base class for all expected domain failures."""

    code = 'error'
    status_code = 400

    def __init__(self, message: str = '', **details):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.details = details


class ValidationError(DomainError):
    """Malformed input."""

    code = 'validation_error'
    status_code = 400


class Unauthorized(DomainError):
    """Missing or invalid caller identity."""

    code = 'unauthorized'
    status_code = 401


class Forbidden(DomainError):
    """Caller does not own the reservation."""

    code = 'forbidden'
    status_code = 403


class NotFound(DomainError):
    """Referenced slot does not exist."""

    code = 'not_found'
    status_code = 404


class Conflict(DomainError):
    """Current state does not allow the requested operation."""

    code = 'conflict'
    status_code = 409
