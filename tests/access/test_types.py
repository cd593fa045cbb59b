"""Tests for access models and configuration."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from access.config import AccessConfig
from access.types import AccountStatus, LoginRequest, ResetPasswordRequest, normalize_email
from tests.fakes import START_TIME


class TestAccountStatus:
    """Closed status enum with an UNKNOWN arm."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("active", AccountStatus.ACTIVE),
            (" Suspended ", AccountStatus.SUSPENDED),
            ("INACTIVE", AccountStatus.INACTIVE),
            ("", AccountStatus.UNKNOWN),
            ("banned", AccountStatus.UNKNOWN),
            (None, AccountStatus.UNKNOWN),
            (42, AccountStatus.UNKNOWN),
            (AccountStatus.INACTIVE, AccountStatus.INACTIVE),
        ],
    )
    def test_parse(self, raw, expected):
        assert AccountStatus.parse(raw) is expected


class TestAccount:

    def test_row_with_corrupt_status_loads(self, make_account):
        """Bad status data never fails model validation; it becomes UNKNOWN."""
        account = make_account(status="???")

        assert account.status is AccountStatus.UNKNOWN

    def test_is_locked_strictly_future(self, make_account):
        account = make_account(locked_until=START_TIME)

        assert account.is_locked(START_TIME - timedelta(seconds=1)) is True
        assert account.is_locked(START_TIME) is False
        assert account.is_locked(START_TIME + timedelta(seconds=1)) is False

    def test_password_hash_not_in_repr(self, account):
        assert account.password_hash not in repr(account)

    def test_full_name(self, account):
        assert account.full_name == "Alice Archer"


class TestRequests:

    def test_normalize_email(self):
        assert normalize_email("  Bob@Example.COM ") == "bob@example.com"

    def test_login_request_normalizes_email(self):
        request = LoginRequest(email=" Bob@Example.com", password="x")

        assert request.email == "bob@example.com"
        assert request.remember is False

    def test_login_requires_password(self):
        with pytest.raises(ValidationError):
            LoginRequest(email="bob@example.com", password="")

    def test_reset_token_length(self):
        with pytest.raises(ValidationError):
            ResetPasswordRequest(
                email="bob@example.com",
                token="short",
                password="Sturdy-Pass-42",
                password_confirmation="Sturdy-Pass-42",
            )


class TestAccessConfig:

    def test_defaults(self):
        config = AccessConfig()

        assert config.max_failed_attempts == 5
        assert config.lockout_minutes == 15
        assert config.rate_limit_attempts == 5
        assert config.rate_limit_window_seconds == 60
        assert config.session_expiry_hours == 2
        assert config.remember_session_expiry_hours == 720

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_failed_attempts": 0},
            {"rate_limit_window_seconds": 0},
            {"password_min_length": 6},
            {"bcrypt_rounds": 3},
        ],
    )
    def test_bounds(self, overrides):
        with pytest.raises(ValidationError):
            AccessConfig(**overrides)
