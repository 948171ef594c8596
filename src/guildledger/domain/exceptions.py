"""Exceptions raised by shared account operations.

Every exception carries a human-readable message that is safe to show to
the caller. Storage-layer details are chained as ``__cause__`` and never
copied into the message.
"""


class SharedAccountError(Exception):
    """Base class for all shared account errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(SharedAccountError):
    """Raised when a shared account or a user relation does not exist."""


class ForbiddenError(SharedAccountError):
    """Raised when the caller lacks the role or permission for an operation."""


class PermissionDeniedError(ForbiddenError):
    """Raised by fail-fast permission validation, carrying the denial reason."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"permission denied: {reason}")


class ConflictError(SharedAccountError):
    """Raised when an operation would break a uniqueness or ownership invariant."""


class StorageFaultError(SharedAccountError):
    """Raised when the underlying database fails for infrastructural reasons."""
