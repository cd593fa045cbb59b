"""Email address verification via signed, expiring links."""

import hashlib
import hmac
import logging
from datetime import timedelta
from urllib.parse import urlencode
from uuid import UUID

from clients.email_client import EmailGatewayClient, EmailGatewayError
from access.config import AccessConfig
from access.database import AccountDatabase
from access.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountSuspendedError,
    EmailAlreadyRegisteredError,
    IncorrectPasswordError,
    InvalidSignatureError,
    RateLimitedError,
)
from access.passwords import PasswordHasher
from access.rate_limiter import RateLimiter
from access.security_logger import SecurityEvent, SecurityLogger
from access.types import Account, AccountStatus, normalize_email
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


def email_hash(email: str) -> str:
    """Hex digest embedded in the link so a changed email invalidates it."""
    return hashlib.sha256(email.encode("utf-8")).hexdigest()


class VerificationService:
    """Issues and checks email verification links.

    Link format:
        {app_base_url}/auth/email/verify/{account_id}/{email_hash}?expires=<unix>&signature=<hex>
    The signature is HMAC-SHA256 over "{account_id}:{email_hash}:{expires}".
    """

    RESEND_KEY_PREFIX = "verification_emails:"
    EMAIL_CHANGE_KEY_PREFIX = "email_change:"

    def __init__(
        self,
        config: AccessConfig,
        accounts: AccountDatabase,
        hasher: PasswordHasher,
        email_client: EmailGatewayClient,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger,
        signing_key: str,
        clock: Clock = now_utc,
    ):
        if not signing_key:
            raise ValueError("signing_key is required")
        self._config = config
        self._accounts = accounts
        self._hasher = hasher
        self._email_client = email_client
        self._rate_limiter = rate_limiter
        self._security_logger = security_logger
        self._signing_key = signing_key.encode("utf-8")
        self._clock = clock

    def _sign(self, account_id: str, hashed_email: str, expires: int) -> str:
        message = f"{account_id}:{hashed_email}:{expires}".encode("utf-8")
        return hmac.new(self._signing_key, message, hashlib.sha256).hexdigest()

    def verification_url(self, account: Account) -> str:
        """Build a signed link valid for verification_expiry_minutes."""
        expires = int(
            (self._clock() + timedelta(minutes=self._config.verification_expiry_minutes)).timestamp()
        )
        hashed = email_hash(account.email)
        signature = self._sign(str(account.id), hashed, expires)
        query = urlencode({"expires": expires, "signature": signature})
        base = self._config.app_base_url.rstrip("/")
        return f"{base}/auth/email/verify/{account.id}/{hashed}?{query}"

    def _check_status(self, account: Account) -> None:
        status = account.status
        if status is AccountStatus.ACTIVE:
            return
        if status is AccountStatus.INACTIVE:
            raise AccountInactiveError("Account inactive. Please contact support to reactivate.")
        # SUSPENDED or UNKNOWN
        raise AccountSuspendedError("Account suspended. Please contact support.")

    def send_verification(self, account: Account, ip_address: str | None = None) -> None:
        """Email a fresh verification link (no throttling)."""
        self._email_client.send_verification_email(
            email=account.email,
            first_name=account.first_name,
            verification_url=self.verification_url(account),
        )
        self._security_logger.log(
            SecurityEvent.VERIFICATION_SENT,
            email=account.email,
            account_id=account.id,
            ip_address=ip_address,
        )

    def verify(
        self,
        account: Account,
        account_id: UUID,
        hashed_email: str,
        expires: int,
        signature: str,
        ip_address: str | None = None,
    ) -> bool:
        """Check a verification link for the signed-in account.

        Returns:
            True if the email was verified now, False if it already was.

        Raises:
            InvalidSignatureError: Bad/expired signature or someone else's link.
            AccountSuspendedError: Account suspended (or unknown status).
            AccountInactiveError: Account deactivated.
        """
        expected = self._sign(str(account_id), hashed_email, expires)
        reason = None
        if not hmac.compare_digest(expected, signature):
            reason = "bad_signature"
        elif self._clock().timestamp() > expires:
            reason = "expired"
        elif account_id != account.id:
            reason = "different_account"
        elif not hmac.compare_digest(hashed_email, email_hash(account.email)):
            reason = "email_changed"

        if reason is not None:
            self._security_logger.log(
                SecurityEvent.VERIFICATION_FAILED,
                email=account.email,
                account_id=account.id,
                ip_address=ip_address,
                details={"reason": reason, "url_account_id": str(account_id)},
            )
            raise InvalidSignatureError("Invalid verification link.")

        if account.email_verified:
            return False

        self._check_status(account)

        now = self._clock()
        if not self._accounts.mark_email_verified(account.id, now):
            return False

        self._security_logger.log(
            SecurityEvent.EMAIL_VERIFIED,
            email=account.email,
            account_id=account.id,
            ip_address=ip_address,
        )

        if account.is_locked(now):
            self._accounts.unlock_account(account.id)
            self._security_logger.log(
                SecurityEvent.ACCOUNT_UNLOCKED,
                email=account.email,
                account_id=account.id,
                details={"reason": "email_verified"},
            )

        return True

    def resend(self, account: Account, ip_address: str | None = None) -> bool:
        """Resend the verification email.

        Returns:
            True if an email was sent, False if the address is already verified.

        Raises:
            AccountSuspendedError / AccountInactiveError: Account not usable.
            RateLimitedError: Too many resends in the window.
        """
        if account.email_verified:
            return False

        self._check_status(account)

        key = f"{self.RESEND_KEY_PREFIX}{account.id}"
        if self._rate_limiter.too_many_attempts(key, self._config.verification_resend_limit):
            raise RateLimitedError(retry_after_seconds=self._rate_limiter.available_in(key))

        self.send_verification(account, ip_address)
        self._rate_limiter.hit(key, self._config.verification_resend_window_seconds)
        return True

    def change_email(
        self,
        account: Account,
        new_email: str,
        current_password: str,
        ip_address: str | None = None,
    ) -> Account:
        """Move the account to a new address and start verification over.

        The new address is unverified until its link is followed. Links
        sent to the old address stop working because they embed its hash,
        and pending reset tokens for the old address are dropped. A failed
        email does not undo the change; the user can resend.

        Raises:
            AccountSuspendedError / AccountInactiveError: Account not usable.
            RateLimitedError: Too many wrong passwords in the window.
            IncorrectPasswordError: current_password did not match.
            EmailAlreadyRegisteredError: Another account holds new_email.
        """
        self._check_status(account)

        key = f"{self.EMAIL_CHANGE_KEY_PREFIX}{account.id}"
        if self._rate_limiter.too_many_attempts(key, self._config.rate_limit_attempts):
            raise RateLimitedError(retry_after_seconds=self._rate_limiter.available_in(key))

        if not self._hasher.verify(current_password, account.password_hash):
            self._rate_limiter.hit(key, self._config.rate_limit_window_seconds)
            self._security_logger.log(
                SecurityEvent.EMAIL_CHANGE_FAILED,
                email=account.email,
                account_id=account.id,
                ip_address=ip_address,
                details={"reason": "incorrect_password"},
            )
            raise IncorrectPasswordError("The provided password is incorrect.")
        self._rate_limiter.clear(key)

        new_email = normalize_email(new_email)
        old_email = account.email
        if new_email != old_email and self._accounts.email_exists(new_email):
            raise EmailAlreadyRegisteredError("This email address is already in use.")

        updated = self._accounts.update_email(account.id, new_email)
        if updated is None:
            raise AccountNotFoundError("Account not found.")
        self._accounts.delete_reset_tokens(old_email)

        self._security_logger.log(
            SecurityEvent.EMAIL_CHANGED,
            email=updated.email,
            account_id=updated.id,
            ip_address=ip_address,
            details={"old_email": old_email, "new_email": updated.email},
        )

        try:
            self.send_verification(updated, ip_address)
        except EmailGatewayError:
            logger.exception("Verification email failed after email change for account %s", updated.id)

        return updated

    def status(self, account: Account) -> dict:
        """Verification state for display."""
        return {
            "email": account.email,
            "email_verified": account.email_verified,
            "email_verified_at": account.email_verified_at.isoformat() if account.email_verified_at else None,
            "can_resend": not account.email_verified,
        }
