"""Forgotten-password flow: reset tokens, throttling and the password swap."""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import quote, urlencode

from clients.email_client import EmailGatewayClient, EmailGatewayError
from access.config import AccessConfig
from access.database import AccountDatabase
from access.exceptions import (
    AccountSuspendedError,
    InvalidTokenError,
    PasswordPolicyError,
    RateLimitedError,
)
from access.passwords import PasswordHasher, enforce_password_policy
from access.rate_limiter import RateLimiter, throttle_key
from access.security_logger import SecurityEvent, SecurityLogger
from access.session import SessionManager
from access.types import AccountStatus, normalize_email
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)

RESET_TOKEN_LENGTH = 64
GENERIC_RESET_MESSAGE = (
    "If an account exists with that email address, "
    "you will receive a password reset link shortly."
)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a reset token; only the digest is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass
class ResetRequestResult:
    """Result of a forgot-password request.

    The message is identical whether or not an email was sent.
    """

    message: str = GENERIC_RESET_MESSAGE


class PasswordResetService:
    """Issues reset tokens and swaps passwords."""

    REQUEST_KEY_PREFIX = "password_reset_request:"
    ATTEMPT_KEY_PREFIX = "password_reset:"

    def __init__(
        self,
        config: AccessConfig,
        accounts: AccountDatabase,
        hasher: PasswordHasher,
        rate_limiter: RateLimiter,
        sessions: SessionManager,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._config = config
        self._accounts = accounts
        self._hasher = hasher
        self._rate_limiter = rate_limiter
        self._sessions = sessions
        self._email_client = email_client
        self._security_logger = security_logger
        self._clock = clock

    def _reset_url(self, token: str, email: str) -> str:
        base = self._config.app_base_url.rstrip("/")
        return f"{base}/password/reset/{quote(token)}?{urlencode({'email': email})}"

    def request_reset(self, email: str, ip_address: str | None = None) -> ResetRequestResult:
        """Send a reset link if the account exists and may reset.

        Unknown and suspended accounts get the same result as everyone
        else. Locked accounts may reset; that is how they get back in.

        Raises:
            RateLimitedError: Too many requests for this email in the window.
        """
        email = normalize_email(email)
        now = self._clock()

        # Counted per email whether or not it exists, so a 429 reveals nothing
        key = f"{self.REQUEST_KEY_PREFIX}{email}"
        if self._rate_limiter.too_many_attempts(key, self._config.password_reset_request_limit):
            raise RateLimitedError(retry_after_seconds=self._rate_limiter.available_in(key))
        self._rate_limiter.hit(key, self._config.password_reset_request_window_minutes * 60)

        account = self._accounts.get_account_by_email(email)
        if account is None:
            logger.info("Password reset requested for unknown email")
            return ResetRequestResult()

        if account.status in (AccountStatus.SUSPENDED, AccountStatus.UNKNOWN):
            self._security_logger.log(
                SecurityEvent.PASSWORD_RESET_FAILED,
                email=email,
                account_id=account.id,
                ip_address=ip_address,
                details={"reason": "account_suspended"},
            )
            return ResetRequestResult()

        token = secrets.token_hex(RESET_TOKEN_LENGTH // 2)
        self._accounts.store_reset_token(email, hash_token(token), now)

        try:
            self._email_client.send_password_reset(
                email=email,
                reset_url=self._reset_url(token, email),
                expires_minutes=self._config.password_reset_expiry_minutes,
            )
        except EmailGatewayError:
            # Same answer either way; the user can ask again
            logger.exception("Password reset email failed for account %s", account.id)
            return ResetRequestResult()

        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET_REQUESTED,
            email=email,
            account_id=account.id,
            ip_address=ip_address,
        )
        return ResetRequestResult()

    def _token_matches(self, email: str, token: str) -> bool:
        stored = self._accounts.get_latest_reset_token(email)
        if stored is None:
            return False
        expiry = stored.created_at + timedelta(minutes=self._config.password_reset_expiry_minutes)
        if self._clock() > expiry:
            return False
        return hmac.compare_digest(stored.token_hash, hash_token(token))

    def check_token(self, email: str, token: str) -> bool:
        """True if token is the newest unexpired reset token for email."""
        return self._token_matches(normalize_email(email), token)

    def reset(
        self,
        email: str,
        token: str,
        password: str,
        password_confirmation: str,
        ip_address: str | None = None,
    ) -> None:
        """Set a new password using a reset token.

        On success the account is unlocked, its failed-attempt counter is
        reset, all its reset tokens are deleted and every session is revoked.

        Raises:
            AccountSuspendedError: Account suspended.
            RateLimitedError: Too many reset attempts.
            PasswordPolicyError: Confirmation mismatch or weak password.
            InvalidTokenError: Token wrong, superseded or expired.
        """
        email = normalize_email(email)
        account = self._accounts.get_account_by_email(email)

        if account is not None and account.status in (AccountStatus.SUSPENDED, AccountStatus.UNKNOWN):
            self._security_logger.log(
                SecurityEvent.PASSWORD_RESET_FAILED,
                email=email,
                account_id=account.id,
                ip_address=ip_address,
                details={"reason": "account_suspended"},
            )
            raise AccountSuspendedError(
                "This account has been suspended. Please contact support for assistance."
            )

        key = f"{self.ATTEMPT_KEY_PREFIX}{throttle_key(email, ip_address)}"
        if self._rate_limiter.too_many_attempts(key, self._config.password_reset_attempt_limit):
            raise RateLimitedError(retry_after_seconds=self._rate_limiter.available_in(key))
        self._rate_limiter.hit(key, self._config.password_reset_attempt_window_minutes * 60)

        if password != password_confirmation:
            raise PasswordPolicyError(["The password confirmation does not match."])
        enforce_password_policy(password, self._config.password_min_length)

        if account is None or not self._token_matches(email, token):
            self._security_logger.log(
                SecurityEvent.PASSWORD_RESET_FAILED,
                email=email,
                account_id=account.id if account else None,
                ip_address=ip_address,
                details={"reason": "invalid_token"},
            )
            raise InvalidTokenError("This password reset token is invalid or has expired.")

        self._accounts.update_password(account.id, self._hasher.hash(password))
        self._accounts.delete_reset_tokens(email)
        self._rate_limiter.clear(key)
        revoked = self._sessions.revoke_all_sessions(account.id)

        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET_COMPLETED,
            email=email,
            account_id=account.id,
            ip_address=ip_address,
            details={"sessions_revoked": revoked},
        )

    def cancel_reset(self, email: str, token: str, ip_address: str | None = None) -> bool:
        """Withdraw every pending reset for email.

        The token from the reset email proves the caller received it, so a
        stranger cannot cancel someone else's reset.

        Returns:
            True if pending tokens were deleted.
        """
        email = normalize_email(email)
        if not self._token_matches(email, token):
            return False

        self._accounts.delete_reset_tokens(email)
        account = self._accounts.get_account_by_email(email)
        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET_CANCELLED,
            email=email,
            account_id=account.id if account else None,
            ip_address=ip_address,
        )
        return True

    def has_recent_request(self, email: str) -> bool:
        """True if a reset was requested within password_reset_status_window_minutes."""
        since = self._clock() - timedelta(minutes=self._config.password_reset_status_window_minutes)
        return self._accounts.has_reset_token_since(normalize_email(email), since)

    def cleanup_expired_tokens(self) -> int:
        """Delete reset tokens past their lifetime. Returns count deleted."""
        cutoff = self._clock() - timedelta(minutes=self._config.password_reset_expiry_minutes)
        return self._accounts.cleanup_expired_reset_tokens(cutoff)
