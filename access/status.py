"""Account state checks shared by the login guard and the status middleware."""

import math
from datetime import datetime

from access.outcomes import (
    AccountInactive,
    AccountLocked,
    AccountSuspended,
    EmailUnverified,
    StatusViolation,
)
from access.types import Account, AccountStatus


def minutes_until(until: datetime, now: datetime) -> int:
    """Whole minutes left, rounded up, never below 1."""
    seconds = (until - now).total_seconds()
    return max(math.ceil(seconds / 60), 1)


def check_account_state(
    account: Account,
    now: datetime,
    enforce_lock: bool = True,
) -> StatusViolation | None:
    """Return the violation that blocks this account, or None if it may proceed.

    Order: lockout, suspended, inactive, active. Any other status is
    treated as suspended. With enforce_lock=False an active lockout is
    ignored and only the status is checked.
    """
    if enforce_lock and account.is_locked(now):
        return AccountLocked(
            minutes_remaining=minutes_until(account.locked_until, now),
            locked_until=account.locked_until,
        )

    status = account.status
    if status is AccountStatus.SUSPENDED:
        return AccountSuspended()
    if status is AccountStatus.INACTIVE:
        return AccountInactive()
    if status is AccountStatus.ACTIVE:
        return None
    # AccountStatus.UNKNOWN
    return AccountSuspended()


def check_session_access(
    account: Account,
    now: datetime,
    require_verified: bool = True,
    enforce_lock: bool = True,
) -> StatusViolation | EmailUnverified | None:
    """Status check for an already signed-in account.

    Same as check_account_state, then the email verification gate.
    """
    violation = check_account_state(account, now, enforce_lock=enforce_lock)
    if violation is not None:
        return violation
    if require_verified and not account.email_verified:
        return EmailUnverified()
    return None
