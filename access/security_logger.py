"""Security event logging for the access audit trail.

Append-only log to the security_events table, mirrored to the Python
logger. Recording an event never fails the request that triggered it:
database errors are logged and dropped.
Includes log rotation to archive old events to file.
"""

import json
import logging
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Access security event types."""

    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_RATE_LIMITED = "login_rate_limited"
    LOGIN_BLOCKED_LOCKED = "login_blocked_locked"
    LOGIN_BLOCKED_SUSPENDED = "login_blocked_suspended"
    LOGIN_BLOCKED_INACTIVE = "login_blocked_inactive"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    ACCOUNT_REGISTERED = "account_registered"
    ACCOUNT_STATUS_CHANGED = "account_status_changed"
    ACCOUNT_DELETED = "account_deleted"
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"
    SESSION_TERMINATED = "session_terminated"
    VERIFICATION_SENT = "verification_sent"
    VERIFICATION_FAILED = "verification_failed"
    EMAIL_VERIFIED = "email_verified"
    EMAIL_CHANGED = "email_changed"
    EMAIL_CHANGE_FAILED = "email_change_failed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_FAILED = "password_reset_failed"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"
    PASSWORD_RESET_CANCELLED = "password_reset_cancelled"


_WARNING_EVENTS = {
    SecurityEvent.LOGIN_FAILED,
    SecurityEvent.LOGIN_RATE_LIMITED,
    SecurityEvent.LOGIN_BLOCKED_LOCKED,
    SecurityEvent.LOGIN_BLOCKED_SUSPENDED,
    SecurityEvent.ACCOUNT_LOCKED,
    SecurityEvent.SESSION_TERMINATED,
    SecurityEvent.VERIFICATION_FAILED,
    SecurityEvent.EMAIL_CHANGE_FAILED,
    SecurityEvent.PASSWORD_RESET_FAILED,
}


class SecurityLogger:
    """Append-only security event logger with rotation."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        account_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to the application log and the database."""
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        logger.log(
            level,
            "security event %s email=%s account_id=%s ip=%s details=%s",
            event.value,
            email,
            account_id,
            ip_address,
            details,
        )

        try:
            self._db.execute_returning(
                """INSERT INTO security_events
                   (event_type, email, account_id, ip_address, user_agent, details, created_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s)
                   RETURNING id""",
                (
                    event.value,
                    email,
                    str(account_id) if account_id else None,
                    ip_address,
                    user_agent,
                    Json(details) if details else None,
                    now_utc(),
                ),
            )
        except Exception:
            logger.exception("Failed to persist security event %s", event.value)

    def get_recent_events(
        self,
        email: str | None = None,
        account_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters."""
        conditions = []
        params = []

        if email:
            conditions.append("email = %s")
            params.append(email)

        if account_id:
            conditions.append("account_id = %s")
            params.append(str(account_id))

        if event_type:
            conditions.append("event_type = %s")
            params.append(event_type.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return self._db.execute(
            f"""SELECT id, event_type, email, account_id, ip_address, user_agent, details, created_at
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            tuple(params),
        )

    def rotate_logs(self, older_than_days: int, output_path: Path) -> int:
        """Archive old logs to file and delete from database.

        Args:
            older_than_days: Archive events older than this many days
            output_path: Path to write JSON lines file

        Returns:
            Number of events archived and deleted
        """
        cutoff = now_utc() - timedelta(days=older_than_days)

        events = self._db.execute(
            """SELECT id, event_type, email, account_id, ip_address, user_agent, details, created_at
               FROM security_events
               WHERE created_at < %s
               ORDER BY created_at ASC""",
            (cutoff,),
        )

        if not events:
            return 0

        # JSON lines, append mode
        with open(output_path, "a") as f:
            for event in events:
                record = {
                    "id": str(event["id"]),
                    "event_type": event["event_type"],
                    "email": event["email"],
                    "account_id": str(event["account_id"]) if event["account_id"] else None,
                    "ip_address": str(event["ip_address"]) if event["ip_address"] else None,
                    "user_agent": event["user_agent"],
                    "details": event["details"],
                    "created_at": event["created_at"].isoformat(),
                }
                f.write(json.dumps(record) + "\n")

        self._db.execute_returning(
            "DELETE FROM security_events WHERE created_at < %s RETURNING id",
            (cutoff,),
        )

        return len(events)
