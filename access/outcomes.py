"""Terminal outcomes of a login attempt and of the account state checks.

Exactly one outcome is returned per attempt. These are values, not
exceptions: callers branch on the type.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from access.types import Account, Session


@dataclass(frozen=True)
class RateLimited:
    """Too many attempts for this email+IP; nothing else was evaluated."""

    seconds_remaining: int


@dataclass(frozen=True)
class AccountLocked:
    """Account is inside a lockout window."""

    minutes_remaining: int
    locked_until: datetime


@dataclass(frozen=True)
class AccountSuspended:
    """Account is suspended (or holds an unrecognised status)."""


@dataclass(frozen=True)
class AccountInactive:
    """Account is deactivated."""


@dataclass(frozen=True)
class InvalidCredentials:
    """Wrong password or unknown email. Deliberately indistinguishable."""


@dataclass(frozen=True)
class EmailUnverified:
    """Authenticated, but the email address has not been verified."""


@dataclass(frozen=True)
class LoginSuccess:
    """All gates passed; a fresh session was issued."""

    account: Account
    session: Session


# Returned by the status checks shared by the guard and the middleware.
StatusViolation = Union[AccountLocked, AccountSuspended, AccountInactive]

LoginResult = Union[
    RateLimited,
    AccountLocked,
    AccountSuspended,
    AccountInactive,
    InvalidCredentials,
    LoginSuccess,
]
