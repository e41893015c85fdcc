class DomainError(Exception):
    """Base exception for business rule violations."""

    kind = "DomainError"


class ValidationError(DomainError):
    """Raised when required input is missing or malformed."""

    kind = "InvalidInput"


class AuthenticationError(DomainError):
    """Raised when the caller identity cannot be resolved."""

    kind = "Unauthenticated"


class AuthorizationError(DomainError):
    """Raised when a caller lacks the role or ownership for an action."""

    kind = "Forbidden"


class NotFoundError(DomainError):
    """Raised when a session, record, student or class does not exist."""

    kind = "NotFound"


class ConflictError(DomainError):
    """Raised on duplicate active sessions or duplicate records."""

    kind = "Conflict"


class InvalidStateError(DomainError):
    """Raised when a session is not in the status an operation requires."""

    kind = "InvalidState"
