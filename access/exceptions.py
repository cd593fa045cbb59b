"""Typed exceptions for access flows outside the login gate."""


class AccessError(Exception):
    """Base class for account access errors."""


class RateLimitedError(AccessError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class InvalidTokenError(AccessError):
    """Password reset token is invalid, expired, or superseded."""


class InvalidSignatureError(AccessError):
    """Verification link signature is invalid, expired, or for another account."""


class EmailAlreadyRegisteredError(AccessError):
    """An account with this email already exists."""


class PasswordPolicyError(AccessError):
    """Password does not meet the policy."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class AccountNotFoundError(AccessError):
    """
    No account with this id or email.

    Note: In user-facing responses, don't reveal whether an email exists.
    This exception is for internal logic only.
    """


class AccountSuspendedError(AccessError):
    """Account is suspended. The operation is not permitted."""


class AccountInactiveError(AccessError):
    """Account is deactivated. The operation is not permitted."""


class SessionExpiredError(AccessError):
    """Session has expired or was revoked; the user must log in again."""


class NotAuthenticatedError(AccessError):
    """No signed-in account on a route that needs one."""


class IncorrectPasswordError(AccessError):
    """Current password re-entered for a sensitive change did not match."""
