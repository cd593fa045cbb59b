"""Login access guard - decides whether a credential submission gets a session.

Gates, in order, each one final:
1. Throttle per email+IP
2. Account lookup (missing account continues, to hide existence)
3. Lockout / status
4. Password check, with bookkeeping on both branches
5. Session issue
"""

from datetime import timedelta

from access.config import AccessConfig
from access.database import AccountDatabase
from access.outcomes import (
    AccountInactive,
    AccountLocked,
    AccountSuspended,
    InvalidCredentials,
    LoginResult,
    LoginSuccess,
    RateLimited,
)
from access.passwords import PasswordHasher
from access.rate_limiter import RateLimiter, throttle_key
from access.security_logger import SecurityEvent, SecurityLogger
from access.session import SessionManager
from access.exceptions import SessionExpiredError
from access.status import check_account_state
from access.types import normalize_email
from utils.timezone import Clock, now_utc

_BLOCKED_EVENTS = {
    AccountLocked: SecurityEvent.LOGIN_BLOCKED_LOCKED,
    AccountSuspended: SecurityEvent.LOGIN_BLOCKED_SUSPENDED,
    AccountInactive: SecurityEvent.LOGIN_BLOCKED_INACTIVE,
}


class AccessGuard:
    """Orchestrates password login and logout.

    Every failed attempt is counted even though the caller only sees one
    outcome: the email+IP throttle and, when the account exists, the
    account's own failure counter.
    """

    def __init__(
        self,
        config: AccessConfig,
        accounts: AccountDatabase,
        rate_limiter: RateLimiter,
        sessions: SessionManager,
        hasher: PasswordHasher,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._config = config
        self._accounts = accounts
        self._rate_limiter = rate_limiter
        self._sessions = sessions
        self._hasher = hasher
        self._security_logger = security_logger
        self._clock = clock

    def attempt_login(
        self,
        email: str,
        password: str,
        ip_address: str | None,
        user_agent: str | None = None,
        remember: bool = False,
        device_name: str | None = None,
    ) -> LoginResult:
        """Evaluate one login attempt and return its outcome."""
        email = normalize_email(email)
        key = throttle_key(email, ip_address)

        if self._rate_limiter.too_many_attempts(key, self._config.rate_limit_attempts):
            seconds = self._rate_limiter.available_in(key)
            self._security_logger.log(
                SecurityEvent.LOGIN_RATE_LIMITED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"retry_after_seconds": seconds},
            )
            return RateLimited(seconds_remaining=seconds)

        account = self._accounts.get_account_by_email(email)
        now = self._clock()

        if account is not None:
            violation = check_account_state(account, now)
            if violation is not None:
                self._security_logger.log(
                    _BLOCKED_EVENTS[type(violation)],
                    email=email,
                    account_id=account.id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    details={"status": account.status.value},
                )
                return violation

        stored_hash = account.password_hash if account is not None else None
        if not self._hasher.verify(password, stored_hash):
            self._rate_limiter.hit(key, self._config.rate_limit_window_seconds)

            details = {"reason": "bad_password" if account else "unknown_email"}
            if account is not None:
                updated = self._accounts.record_failed_login(
                    account.id,
                    threshold=self._config.max_failed_attempts,
                    lock_until=now + timedelta(minutes=self._config.lockout_minutes),
                )
                if updated is not None:
                    details["failed_login_attempts"] = updated.failed_login_attempts
                    if updated.is_locked(now) and not account.is_locked(now):
                        self._security_logger.log(
                            SecurityEvent.ACCOUNT_LOCKED,
                            email=email,
                            account_id=account.id,
                            ip_address=ip_address,
                            details={"locked_until": updated.locked_until.isoformat()},
                        )

            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                account_id=account.id if account else None,
                ip_address=ip_address,
                user_agent=user_agent,
                details=details,
            )
            return InvalidCredentials()

        self._rate_limiter.clear(key)
        self._accounts.record_successful_login(account.id, ip_address, now)

        session = self._sessions.create_session(
            account.id,
            remember=remember,
            device_name=device_name,
            ip_address=ip_address,
        )

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=email,
            account_id=account.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"remember": remember, "device_name": device_name},
        )
        self._security_logger.log(
            SecurityEvent.SESSION_CREATED,
            email=email,
            account_id=account.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        account = account.model_copy(
            update={
                "failed_login_attempts": 0,
                "locked_until": None,
                "last_login_at": now,
                "last_login_ip": ip_address,
            }
        )
        return LoginSuccess(account=account, session=session)

    def logout(self, session_token: str, ip_address: str | None) -> None:
        """Revoke session (logout).

        Safe to call with invalid token.
        """
        try:
            session = self._sessions.validate_session(session_token)
            account_id = session.account_id
        except SessionExpiredError:
            account_id = None

        self._sessions.revoke_session(session_token)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            account_id=account_id,
            ip_address=ip_address,
        )
