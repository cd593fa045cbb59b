"""Account access: login guard, sessions, status checks and account lifecycle."""

from access.exceptions import (
    AccessError,
    RateLimitedError,
    InvalidTokenError,
    InvalidSignatureError,
    EmailAlreadyRegisteredError,
    PasswordPolicyError,
    AccountNotFoundError,
    AccountSuspendedError,
    AccountInactiveError,
    SessionExpiredError,
    NotAuthenticatedError,
)
from access.types import (
    Account,
    AccountStatus,
    Session,
    LoginRequest,
    RegistrationRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
)
from access.outcomes import (
    RateLimited,
    AccountLocked,
    AccountSuspended,
    AccountInactive,
    InvalidCredentials,
    EmailUnverified,
    LoginSuccess,
    LoginResult,
    StatusViolation,
)
from access.config import AccessConfig
from access.database import AccountDatabase
from access.passwords import PasswordHasher
from access.rate_limiter import RateLimiter, throttle_key
from access.security_logger import SecurityLogger, SecurityEvent
from access.session import SessionManager
from access.status import check_account_state, check_session_access
from access.guard import AccessGuard
from access.verification import VerificationService
from access.registration import RegistrationService
from access.password_reset import PasswordResetService
from access.admin import AccountAdministration
from access.status_middleware import AccountStatusMiddleware
from access.api import create_access_router, require_account
