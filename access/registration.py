"""Account registration."""

import logging

from clients.email_client import EmailGatewayError
from access.config import AccessConfig
from access.database import AccountDatabase
from access.exceptions import EmailAlreadyRegisteredError
from access.passwords import PasswordHasher, enforce_password_policy
from access.security_logger import SecurityEvent, SecurityLogger
from access.types import Account, RegistrationRequest, normalize_email
from access.verification import VerificationService

logger = logging.getLogger(__name__)


class RegistrationService:
    """Creates accounts: active, zero failed attempts, email unverified."""

    def __init__(
        self,
        config: AccessConfig,
        accounts: AccountDatabase,
        hasher: PasswordHasher,
        verification: VerificationService,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._accounts = accounts
        self._hasher = hasher
        self._verification = verification
        self._security_logger = security_logger

    def is_email_available(self, email: str) -> bool:
        return not self._accounts.email_exists(normalize_email(email))

    def register(
        self,
        request: RegistrationRequest,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Account:
        """Register a new account and send its verification email.

        A failed verification email does not undo the registration; the
        user can ask for another one.

        Raises:
            PasswordPolicyError: Password too weak.
            EmailAlreadyRegisteredError: Email in use.
        """
        enforce_password_policy(request.password, self._config.password_min_length)

        email = normalize_email(request.email)
        if self._accounts.email_exists(email):
            raise EmailAlreadyRegisteredError(
                "This email address is already registered. Please log in instead."
            )

        account = self._accounts.create_account(
            email=email,
            password_hash=self._hasher.hash(request.password),
            first_name=request.first_name,
            last_name=request.last_name,
            preferred_currency=request.preferred_currency,
            timezone=request.timezone,
        )

        self._security_logger.log(
            SecurityEvent.ACCOUNT_REGISTERED,
            email=account.email,
            account_id=account.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        try:
            self._verification.send_verification(account, ip_address)
        except EmailGatewayError:
            logger.exception("Verification email failed for new account %s", account.id)

        return account
