"""Tests for AccountDatabase - SQL issued against a mocked PostgresClient."""

from datetime import timedelta
from unittest.mock import Mock

import psycopg2.errors
import pytest

from access.database import AccountDatabase
from access.exceptions import EmailAlreadyRegisteredError
from access.types import AccountStatus
from clients.postgres_client import PostgresClient
from tests.fakes import START_TIME, TEST_ACCOUNT_EMAIL, TEST_ACCOUNT_ID


@pytest.fixture
def postgres():
    return Mock(spec=PostgresClient)


@pytest.fixture
def account_db(postgres):
    return AccountDatabase(postgres)


def account_row(**overrides) -> dict:
    row = {
        "id": TEST_ACCOUNT_ID,
        "email": TEST_ACCOUNT_EMAIL,
        "password_hash": "$2b$04$hash",
        "first_name": "Alice",
        "last_name": "Archer",
        "status": "active",
        "failed_login_attempts": 0,
        "locked_until": None,
        "email_verified_at": START_TIME,
        "last_login_at": None,
        "last_login_ip": None,
        "preferred_currency": "USD",
        "timezone": "UTC",
        "created_at": START_TIME,
    }
    row.update(overrides)
    return row


class TestLookups:

    def test_by_email_excludes_deleted(self, account_db, postgres):
        postgres.execute_single.return_value = account_row()

        account = account_db.get_account_by_email(" Alice@example.com ")

        assert account.id == TEST_ACCOUNT_ID
        query, params = postgres.execute_single.call_args.args
        assert "deleted_at IS NULL" in query
        assert "lower(%s)" in query
        assert params == ("Alice@example.com",)

    def test_missing(self, account_db, postgres):
        postgres.execute_single.return_value = None

        assert account_db.get_account_by_id(TEST_ACCOUNT_ID) is None

    def test_unrecognised_status_loads_as_unknown(self, account_db, postgres):
        postgres.execute_single.return_value = account_row(status="pending_review")

        assert account_db.get_account_by_id(TEST_ACCOUNT_ID).status is AccountStatus.UNKNOWN

    def test_email_exists_includes_deleted(self, account_db, postgres):
        postgres.execute_scalar.return_value = 1

        assert account_db.email_exists("alice@example.com") is True
        assert "deleted_at" not in postgres.execute_scalar.call_args.args[0]


class TestFailureCounting:

    def test_single_atomic_update(self, account_db, postgres):
        """Increment and lock decision happen in one statement."""
        lock_until = START_TIME + timedelta(minutes=15)
        postgres.execute_returning.return_value = [
            account_row(failed_login_attempts=5, locked_until=lock_until)
        ]

        account = account_db.record_failed_login(TEST_ACCOUNT_ID, threshold=5, lock_until=lock_until)

        postgres.execute_returning.assert_called_once()
        query, params = postgres.execute_returning.call_args.args
        assert "failed_login_attempts = failed_login_attempts + 1" in query
        assert "CASE" in query
        assert params == (5, lock_until, str(TEST_ACCOUNT_ID))
        assert account.locked_until == lock_until

    def test_deleted_between_lookup_and_update(self, account_db, postgres):
        postgres.execute_returning.return_value = []

        assert account_db.record_failed_login(TEST_ACCOUNT_ID, 5, START_TIME) is None

    def test_successful_login_clears_failures(self, account_db, postgres):
        account_db.record_successful_login(TEST_ACCOUNT_ID, "203.0.113.7", START_TIME)

        query, params = postgres.execute_returning.call_args.args
        assert "failed_login_attempts = 0" in query
        assert "locked_until = NULL" in query
        assert params == (START_TIME, "203.0.113.7", str(TEST_ACCOUNT_ID))


class TestStatus:

    def test_set_status(self, account_db, postgres):
        postgres.execute_returning.return_value = [{"id": TEST_ACCOUNT_ID}]

        assert account_db.set_status(TEST_ACCOUNT_ID, AccountStatus.SUSPENDED) is True
        assert postgres.execute_returning.call_args.args[1][0] == "suspended"

    def test_unknown_never_stored(self, account_db, postgres):
        with pytest.raises(ValueError):
            account_db.set_status(TEST_ACCOUNT_ID, AccountStatus.UNKNOWN)
        postgres.execute_returning.assert_not_called()

    def test_not_found(self, account_db, postgres):
        postgres.execute_returning.return_value = []

        assert account_db.unlock_account(TEST_ACCOUNT_ID) is False


class TestResetTokens:

    def test_latest_token(self, account_db, postgres):
        postgres.execute_single.return_value = {
            "email": TEST_ACCOUNT_EMAIL,
            "token_hash": "ab" * 32,
            "created_at": START_TIME,
        }

        token = account_db.get_latest_reset_token(TEST_ACCOUNT_EMAIL)

        assert token.token_hash == "ab" * 32
        assert "ORDER BY created_at DESC" in postgres.execute_single.call_args.args[0]

    def test_delete_counts_rows(self, account_db, postgres):
        postgres.execute_returning.return_value = [{"email": TEST_ACCOUNT_EMAIL}] * 2

        assert account_db.delete_reset_tokens(TEST_ACCOUNT_EMAIL) == 2

    def test_recent_token_check(self, account_db, postgres):
        postgres.execute_scalar.return_value = 1

        assert account_db.has_reset_token_since(TEST_ACCOUNT_EMAIL, START_TIME) is True
        query, params = postgres.execute_scalar.call_args.args
        assert "created_at > %s" in query
        assert params == (TEST_ACCOUNT_EMAIL, START_TIME)


class TestUniqueEmail:
    """The unique index on email is the last word on duplicates."""

    def test_create_duplicate_raises_domain_error(self, account_db, postgres):
        postgres.execute_returning.side_effect = psycopg2.errors.UniqueViolation()

        with pytest.raises(EmailAlreadyRegisteredError):
            account_db.create_account(TEST_ACCOUNT_EMAIL, "$2b$04$hash", "Alice", "Archer")

    def test_update_email_clears_verification(self, account_db, postgres):
        postgres.execute_returning.return_value = [
            account_row(email="alice.new@example.com", email_verified_at=None)
        ]

        account = account_db.update_email(TEST_ACCOUNT_ID, "alice.new@example.com")

        assert account.email_verified_at is None
        query, params = postgres.execute_returning.call_args.args
        assert "email_verified_at = NULL" in query
        assert "deleted_at IS NULL" in query
        assert params == ("alice.new@example.com", str(TEST_ACCOUNT_ID))

    def test_update_email_missing_account(self, account_db, postgres):
        postgres.execute_returning.return_value = []

        assert account_db.update_email(TEST_ACCOUNT_ID, "alice.new@example.com") is None

    def test_update_email_taken(self, account_db, postgres):
        postgres.execute_returning.side_effect = psycopg2.errors.UniqueViolation()

        with pytest.raises(EmailAlreadyRegisteredError):
            account_db.update_email(TEST_ACCOUNT_ID, "bob@example.com")
