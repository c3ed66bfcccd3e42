from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class SessionInvalid(AuthenticationError):
    """Raised when a session token is unknown, expired or revoked."""

    def __init__(self, message: str = "Invalid or expired session") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class CSRFMismatch(AccessDeniedError):
    """Raised when the CSRF header does not match the CSRF cookie."""

    def __init__(self, message: str = "Invalid CSRF token") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when a write collides with an existing resource."""


class TokenError(UserError):
    """Base class for single-use token failures.

    The concrete subclass is for server-side logs only. Clients always see
    the same message so they cannot tell an expired token from a used one.
    """

    public_message = "Invalid or expired token"

    def __init__(self) -> None:
        super().__init__(self.public_message)


class TokenNotFound(TokenError):
    """No token with this hash exists for the requested purpose."""


class TokenExpired(TokenError):
    """The token exists but its expiry has passed."""


class TokenAlreadyUsed(TokenError):
    """The token was already consumed."""


class HashingError(Exception):
    """Raised when password hashing fails for reasons unrelated to user input."""
