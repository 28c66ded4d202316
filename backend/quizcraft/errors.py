"""Domain error taxonomy.

Services raise these internally; the `services.action` decorator turns
them into structured `{message, error, error_type}` results so nothing
propagates past the service boundary. Messages are user facing and are
surfaced verbatim.
"""


class QuizcraftError(Exception):
    """Base class for expected, user-facing failures."""
    error_type = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuizcraftError):
    """Malformed or missing required input."""
    error_type = "validation"


class AuthorizationError(QuizcraftError):
    """A mutating operation is missing the identity it requires."""
    error_type = "authorization"


class NotFoundError(QuizcraftError):
    """A referenced entity does not exist."""
    error_type = "not_found"


class ConflictError(QuizcraftError):
    """The operation violates a state invariant."""
    error_type = "conflict"
