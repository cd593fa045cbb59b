"""Tests for the shared account state checks."""

from datetime import timedelta

import pytest

from access.outcomes import AccountInactive, AccountLocked, AccountSuspended, EmailUnverified
from access.status import check_account_state, check_session_access, minutes_until
from access.types import AccountStatus
from tests.fakes import START_TIME


class TestMinutesUntil:

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(minutes=15), 15),
            (timedelta(minutes=14, seconds=1), 15),
            (timedelta(seconds=1), 1),
            (timedelta(0), 1),
        ],
    )
    def test_rounds_up_with_floor_of_one(self, delta, expected):
        assert minutes_until(START_TIME + delta, START_TIME) == expected


class TestCheckAccountState:
    """Evaluation order: lockout, suspended, inactive, active, unknown."""

    def test_active_passes(self, account, clock):
        assert check_account_state(account, clock()) is None

    def test_locked(self, make_account, clock):
        until = clock() + timedelta(minutes=3)
        account = make_account(locked_until=until)

        assert check_account_state(account, clock()) == AccountLocked(minutes_remaining=3, locked_until=until)

    def test_lock_boundary_is_unlocked(self, make_account, clock):
        account = make_account(locked_until=clock())

        assert check_account_state(account, clock()) is None

    @pytest.mark.parametrize(
        "status, expected",
        [
            (AccountStatus.SUSPENDED, AccountSuspended()),
            (AccountStatus.INACTIVE, AccountInactive()),
            ("archived", AccountSuspended()),
            ("", AccountSuspended()),
        ],
    )
    def test_status_outcomes(self, make_account, clock, status, expected):
        account = make_account(status=status)

        assert check_account_state(account, clock()) == expected


class TestCheckSessionAccess:
    """Status check plus email verification gate."""

    def test_unverified_blocked(self, make_account, clock):
        account = make_account(email_verified_at=None)

        assert check_session_access(account, clock()) == EmailUnverified()

    def test_unverified_allowed_when_not_required(self, make_account, clock):
        account = make_account(email_verified_at=None)

        assert check_session_access(account, clock(), require_verified=False) is None

    def test_status_wins_over_verification(self, make_account, clock):
        account = make_account(email_verified_at=None, status=AccountStatus.SUSPENDED)

        assert check_session_access(account, clock()) == AccountSuspended()

    def test_verified_active_passes(self, account, clock):
        assert check_session_access(account, clock()) is None

    def test_lock_ignored_when_not_enforced(self, make_account, clock):
        account = make_account(email_verified_at=None, locked_until=clock() + timedelta(minutes=5))

        assert check_session_access(account, clock(), require_verified=False, enforce_lock=False) is None

    def test_status_still_checked_when_lock_not_enforced(self, make_account, clock):
        account = make_account(status=AccountStatus.INACTIVE, locked_until=clock() + timedelta(minutes=5))

        assert check_session_access(account, clock(), enforce_lock=False) == AccountInactive()
