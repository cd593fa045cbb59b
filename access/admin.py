"""Administrative account actions."""

import logging
from pathlib import Path
from uuid import UUID

from access.database import AccountDatabase
from access.security_logger import SecurityEvent, SecurityLogger
from access.session import SessionManager
from access.types import AccountStatus
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class AccountAdministration:
    """Status changes, unlocks and deletion on behalf of an operator.

    Every method returns False when the account does not exist.
    Status changes and deletion end all of the account's sessions so the
    change takes effect immediately rather than at the next request.
    """

    def __init__(
        self,
        accounts: AccountDatabase,
        sessions: SessionManager,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._accounts = accounts
        self._sessions = sessions
        self._security_logger = security_logger
        self._clock = clock

    def _change_status(self, account_id: UUID, status: AccountStatus, reason: str | None) -> bool:
        account = self._accounts.get_account_by_id(account_id)
        if account is None:
            return False

        if not self._accounts.set_status(account_id, status):
            return False

        revoked = 0
        if status is not AccountStatus.ACTIVE:
            revoked = self._sessions.revoke_all_sessions(account_id)

        self._security_logger.log(
            SecurityEvent.ACCOUNT_STATUS_CHANGED,
            email=account.email,
            account_id=account_id,
            details={
                "from": account.status.value,
                "to": status.value,
                "reason": reason,
                "sessions_revoked": revoked,
            },
        )
        return True

    def suspend(self, account_id: UUID, reason: str | None = None) -> bool:
        return self._change_status(account_id, AccountStatus.SUSPENDED, reason)

    def deactivate(self, account_id: UUID, reason: str | None = None) -> bool:
        return self._change_status(account_id, AccountStatus.INACTIVE, reason)

    def reactivate(self, account_id: UUID, reason: str | None = None) -> bool:
        return self._change_status(account_id, AccountStatus.ACTIVE, reason)

    def unlock(self, account_id: UUID) -> bool:
        """Clear a lockout and the failure counter."""
        account = self._accounts.get_account_by_id(account_id)
        if account is None or not self._accounts.unlock_account(account_id):
            return False

        self._security_logger.log(
            SecurityEvent.ACCOUNT_UNLOCKED,
            email=account.email,
            account_id=account_id,
            details={"reason": "administrator"},
        )
        return True

    def soft_delete(self, account_id: UUID) -> bool:
        """Hide the account from every lookup and end its sessions."""
        account = self._accounts.get_account_by_id(account_id)
        if account is None or not self._accounts.soft_delete(account_id, self._clock()):
            return False

        revoked = self._sessions.revoke_all_sessions(account_id)
        self._security_logger.log(
            SecurityEvent.ACCOUNT_DELETED,
            email=account.email,
            account_id=account_id,
            details={"sessions_revoked": revoked},
        )
        return True

    def security_history(self, account_id: UUID, limit: int = 50) -> list[dict]:
        """Newest audit events for one account."""
        return self._security_logger.get_recent_events(account_id=account_id, limit=limit)

    def archive_security_events(self, older_than_days: int, output_path: Path) -> int:
        """Move audit events older than the cutoff into a JSON-lines archive.

        Returns:
            Number of events archived.
        """
        if older_than_days < 1:
            raise ValueError("older_than_days must be at least 1")
        archived = self._security_logger.rotate_logs(older_than_days, output_path)
        logger.info("Archived %d security events older than %d days to %s", archived, older_than_days, output_path)
        return archived
