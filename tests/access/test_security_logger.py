"""Tests for SecurityLogger - access event audit trail."""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import Mock
from uuid import UUID

import pytest
from psycopg2.extras import Json

from access.security_logger import SecurityEvent, SecurityLogger
from clients.postgres_client import PostgresClient
from tests.fakes import TEST_ACCOUNT_EMAIL, TEST_ACCOUNT_ID, TEST_IP


@pytest.fixture
def postgres():
    return Mock(spec=PostgresClient)


@pytest.fixture
def security_logger(postgres):
    """Real SecurityLogger over a mocked database."""
    return SecurityLogger(postgres)


class TestLogEvent:
    """Test event logging."""

    def test_persists_event(self, security_logger, postgres):
        security_logger.log(
            SecurityEvent.LOGIN_FAILED,
            email=TEST_ACCOUNT_EMAIL,
            account_id=TEST_ACCOUNT_ID,
            ip_address=TEST_IP,
            details={"reason": "bad_password"},
        )

        query, params = postgres.execute_returning.call_args.args
        assert "INSERT INTO security_events" in query
        assert params[:4] == ("login_failed", TEST_ACCOUNT_EMAIL, str(TEST_ACCOUNT_ID), TEST_IP)
        assert isinstance(params[5], Json)

    def test_no_details_stored_as_null(self, security_logger, postgres):
        security_logger.log(SecurityEvent.SESSION_CREATED)

        params = postgres.execute_returning.call_args.args[1]
        assert params[2] is None
        assert params[5] is None

    def test_database_failure_swallowed(self, security_logger, postgres, caplog):
        """Auditing never fails the request that triggered it."""
        postgres.execute_returning.side_effect = RuntimeError("db down")

        with caplog.at_level(logging.ERROR, logger="access.security_logger"):
            security_logger.log(SecurityEvent.LOGIN_SUCCEEDED, email=TEST_ACCOUNT_EMAIL)

        assert "Failed to persist security event login_succeeded" in caplog.text

    def test_failures_logged_as_warnings(self, security_logger, caplog):
        with caplog.at_level(logging.INFO, logger="access.security_logger"):
            security_logger.log(SecurityEvent.ACCOUNT_LOCKED, email=TEST_ACCOUNT_EMAIL)
            security_logger.log(SecurityEvent.LOGIN_SUCCEEDED, email=TEST_ACCOUNT_EMAIL)

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.WARNING, logging.INFO]


class TestGetRecentEvents:
    """Test event querying."""

    def test_filters(self, security_logger, postgres):
        postgres.execute.return_value = []

        security_logger.get_recent_events(
            email=TEST_ACCOUNT_EMAIL,
            event_type=SecurityEvent.ACCOUNT_LOCKED,
            limit=10,
        )

        query, params = postgres.execute.call_args.args
        assert "email = %s AND event_type = %s" in query
        assert params == (TEST_ACCOUNT_EMAIL, "account_locked", 10)

    def test_no_filters(self, security_logger, postgres):
        postgres.execute.return_value = []

        security_logger.get_recent_events()

        assert "WHERE 1=1" in postgres.execute.call_args.args[0]


class TestRotateLogs:

    def test_archives_then_deletes(self, security_logger, postgres, tmp_path):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        postgres.execute.return_value = [
            {
                "id": UUID("00000000-0000-0000-0000-0000000000aa"),
                "event_type": "login_failed",
                "email": TEST_ACCOUNT_EMAIL,
                "account_id": TEST_ACCOUNT_ID,
                "ip_address": TEST_IP,
                "user_agent": None,
                "details": {"reason": "bad_password"},
                "created_at": created,
            }
        ]
        archive = tmp_path / "security_events.jsonl"

        assert security_logger.rotate_logs(older_than_days=90, output_path=archive) == 1

        record = json.loads(archive.read_text().splitlines()[0])
        assert record["event_type"] == "login_failed"
        assert record["account_id"] == str(TEST_ACCOUNT_ID)
        assert record["created_at"] == created.isoformat()
        assert "DELETE FROM security_events" in postgres.execute_returning.call_args.args[0]

    def test_nothing_to_archive(self, security_logger, postgres, tmp_path):
        postgres.execute.return_value = []

        assert security_logger.rotate_logs(90, tmp_path / "out.jsonl") == 0
        postgres.execute_returning.assert_not_called()
