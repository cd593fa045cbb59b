"""Database operations for account access.

Tables: users, password_reset_tokens.
Soft-deleted users (deleted_at set) are invisible to every lookup but keep
their row so linked financial records stay intact.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import psycopg2.errors

from clients.postgres_client import PostgresClient
from access.exceptions import EmailAlreadyRegisteredError
from access.types import Account, AccountStatus, PasswordResetToken

_ACCOUNT_COLUMNS = """id, email, password_hash, first_name, last_name, status,
       failed_login_attempts, locked_until, email_verified_at,
       last_login_at, last_login_ip, preferred_currency, timezone, created_at"""


def _to_account(row: dict[str, Any] | None) -> Account | None:
    if row is None:
        return None
    return Account.model_validate(row)


class AccountDatabase:
    """Database operations for accounts and password reset tokens."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_account_by_email(self, email: str) -> Account | None:
        """Find live account by email (case-insensitive)."""
        row = self._db.execute_single(
            f"""SELECT {_ACCOUNT_COLUMNS}
                FROM users WHERE email = lower(%s) AND deleted_at IS NULL""",
            (email.strip(),),
        )
        return _to_account(row)

    def get_account_by_id(self, account_id: UUID) -> Account | None:
        """Find live account by ID."""
        row = self._db.execute_single(
            f"""SELECT {_ACCOUNT_COLUMNS}
                FROM users WHERE id = %s AND deleted_at IS NULL""",
            (str(account_id),),
        )
        return _to_account(row)

    def email_exists(self, email: str) -> bool:
        """True if any row (soft-deleted included) holds this email."""
        count = self._db.execute_scalar(
            "SELECT count(*) FROM users WHERE email = lower(%s)",
            (email.strip(),),
        )
        return bool(count)

    def create_account(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        preferred_currency: str = "USD",
        timezone: str = "UTC",
    ) -> Account:
        """Create an active, unverified account with a clean security state.

        Raises:
            EmailAlreadyRegisteredError: The unique index on email rejected
                the insert (a concurrent registration won the race).
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users
                        (email, password_hash, first_name, last_name, preferred_currency,
                         timezone, status, failed_login_attempts)
                    VALUES (lower(%s), %s, %s, %s, %s, %s, %s, 0)
                    RETURNING {_ACCOUNT_COLUMNS}""",
                (
                    email.strip(),
                    password_hash,
                    first_name,
                    last_name,
                    preferred_currency,
                    timezone,
                    AccountStatus.ACTIVE.value,
                ),
            )
        except psycopg2.errors.UniqueViolation as exc:
            raise EmailAlreadyRegisteredError(
                "This email address is already registered. Please log in instead."
            ) from exc
        return _to_account(rows[0])

    def record_failed_login(
        self,
        account_id: UUID,
        threshold: int,
        lock_until: datetime,
    ) -> Account | None:
        """Count a failed login and lock the account once threshold is reached.

        Single UPDATE so concurrent failures are never undercounted: the
        database increments and compares in one statement.

        Returns:
            The updated account, or None if it no longer exists.
        """
        rows = self._db.execute_returning(
            f"""UPDATE users
                SET failed_login_attempts = failed_login_attempts + 1,
                    locked_until = CASE
                        WHEN failed_login_attempts + 1 >= %s THEN %s
                        ELSE locked_until
                    END,
                    updated_at = now()
                WHERE id = %s AND deleted_at IS NULL
                RETURNING {_ACCOUNT_COLUMNS}""",
            (threshold, lock_until, str(account_id)),
        )
        return _to_account(rows[0]) if rows else None

    def record_successful_login(self, account_id: UUID, ip_address: str | None, at: datetime) -> None:
        """Reset failure tracking and stamp last login."""
        self._db.execute_returning(
            """UPDATE users
               SET failed_login_attempts = 0,
                   locked_until = NULL,
                   last_login_at = %s,
                   last_login_ip = %s,
                   updated_at = now()
               WHERE id = %s
               RETURNING id""",
            (at, ip_address, str(account_id)),
        )

    def set_status(self, account_id: UUID, status: AccountStatus) -> bool:
        """Change administrative status.

        Returns:
            True if account was found and updated, False if not found.
        """
        if status is AccountStatus.UNKNOWN:
            raise ValueError("Cannot store UNKNOWN account status")
        rows = self._db.execute_returning(
            """UPDATE users SET status = %s, updated_at = now()
               WHERE id = %s AND deleted_at IS NULL RETURNING id""",
            (status.value, str(account_id)),
        )
        return len(rows) > 0

    def unlock_account(self, account_id: UUID) -> bool:
        """Clear lockout and failure counter.

        Returns:
            True if account was found and unlocked, False if not found.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET locked_until = NULL, failed_login_attempts = 0, updated_at = now()
               WHERE id = %s AND deleted_at IS NULL RETURNING id""",
            (str(account_id),),
        )
        return len(rows) > 0

    def mark_email_verified(self, account_id: UUID, at: datetime) -> bool:
        """Set email_verified_at.

        Returns:
            True if the email went from unverified to verified.
        """
        rows = self._db.execute_returning(
            """UPDATE users SET email_verified_at = %s, updated_at = now()
               WHERE id = %s AND email_verified_at IS NULL RETURNING id""",
            (at, str(account_id)),
        )
        return len(rows) > 0

    def update_password(self, account_id: UUID, password_hash: str) -> bool:
        """Store a new password hash; also clears lockout and failure counter.

        Returns:
            True if account was found and updated, False if not found.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET password_hash = %s, failed_login_attempts = 0,
                   locked_until = NULL, updated_at = now()
               WHERE id = %s AND deleted_at IS NULL RETURNING id""",
            (password_hash, str(account_id)),
        )
        return len(rows) > 0

    def update_email(self, account_id: UUID, email: str) -> Account | None:
        """Change the email address and clear email_verified_at.

        Returns:
            The updated account, or None if it no longer exists.

        Raises:
            EmailAlreadyRegisteredError: Another row already holds the address.
        """
        try:
            rows = self._db.execute_returning(
                f"""UPDATE users
                    SET email = lower(%s), email_verified_at = NULL, updated_at = now()
                    WHERE id = %s AND deleted_at IS NULL
                    RETURNING {_ACCOUNT_COLUMNS}""",
                (email.strip(), str(account_id)),
            )
        except psycopg2.errors.UniqueViolation as exc:
            raise EmailAlreadyRegisteredError("This email address is already in use.") from exc
        return _to_account(rows[0]) if rows else None

    def soft_delete(self, account_id: UUID, at: datetime) -> bool:
        """Hide the account from lookups without removing its row.

        Returns:
            True if a live account was deleted, False if not found.
        """
        rows = self._db.execute_returning(
            """UPDATE users SET deleted_at = %s, updated_at = now()
               WHERE id = %s AND deleted_at IS NULL RETURNING id""",
            (at, str(account_id)),
        )
        return len(rows) > 0

    def store_reset_token(self, email: str, token_hash: str, created_at: datetime) -> None:
        """Store hashed password reset token."""
        self._db.execute_returning(
            """INSERT INTO password_reset_tokens (email, token_hash, created_at)
               VALUES (lower(%s), %s, %s)
               RETURNING email""",
            (email, token_hash, created_at),
        )

    def get_latest_reset_token(self, email: str) -> PasswordResetToken | None:
        """Newest reset token for email; older ones are superseded."""
        row = self._db.execute_single(
            """SELECT email, token_hash, created_at
               FROM password_reset_tokens
               WHERE email = lower(%s)
               ORDER BY created_at DESC
               LIMIT 1""",
            (email,),
        )
        if row is None:
            return None
        return PasswordResetToken.model_validate(row)

    def has_reset_token_since(self, email: str, since: datetime) -> bool:
        """True if a reset token for email was created after since."""
        count = self._db.execute_scalar(
            """SELECT count(*) FROM password_reset_tokens
               WHERE email = lower(%s) AND created_at > %s""",
            (email, since),
        )
        return bool(count)

    def delete_reset_tokens(self, email: str) -> int:
        """Delete all reset tokens for email. Returns count deleted."""
        rows = self._db.execute_returning(
            "DELETE FROM password_reset_tokens WHERE email = lower(%s) RETURNING email",
            (email,),
        )
        return len(rows)

    def cleanup_expired_reset_tokens(self, created_before: datetime) -> int:
        """Delete reset tokens created before the cutoff. Returns count deleted."""
        rows = self._db.execute_returning(
            """DELETE FROM password_reset_tokens
               WHERE created_at < %s
               RETURNING email""",
            (created_before,),
        )
        return len(rows)
