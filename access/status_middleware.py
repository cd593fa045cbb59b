"""Per-request account status enforcement for FastAPI.

Runs after a session is resolved. An account that was locked, suspended
or deactivated since the session was issued loses that session on its
next request.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from access.config import AccessConfig
from access.database import AccountDatabase
from access.exceptions import SessionExpiredError
from access.outcomes import AccountInactive, AccountLocked, EmailUnverified, StatusViolation
from access.security_logger import SecurityEvent, SecurityLogger
from access.session import SessionManager
from access.status import check_session_access
from access.types import Account, Session
from api.base import error_json, ErrorCodes
from utils.timezone import Clock, now_utc

SESSION_COOKIE = "session_token"


def session_token_from(request: Request) -> str | None:
    """Session token from the cookie, or from an Authorization: Bearer header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def wants_json(request: Request) -> bool:
    """API and auth endpoints, and any client asking for JSON."""
    path = request.url.path
    if path.startswith("/api/") or path.startswith("/auth/"):
        return True
    if "application/json" in request.headers.get("Accept", ""):
        return True
    return request.headers.get("Authorization", "").lower().startswith("bearer ")


class AccountStatusMiddleware(BaseHTTPMiddleware):
    """Resolves the session principal and enforces account status on it.

    For requests carrying a session token:
    1. Validates the session; unknown or expired tokens pass through
       with no principal attached
    2. Loads the account and re-checks lockout and status (lockout is
       not enforced on the verification link itself)
    3. On a violation revokes the session and answers 423/403 (JSON)
       or redirects (browser)
    4. Blocks unverified email addresses outside the exempt paths
    5. Sets request.state.account and request.state.session

    Public paths skip the middleware entirely.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
        "/assets/",
    ]

    # Reachable with an unverified email address
    VERIFICATION_EXEMPT_PATHS = [
        "/auth/email/",
        "/auth/logout",
        "/auth/me",
        "/auth/login",
        "/auth/register",
        "/auth/check-email",
        "/auth/password/",
        "/email/verify",
    ]

    # A verification link unlocks the account, so lockout alone does not end
    # the session here
    LOCK_EXEMPT_PATHS = [
        "/auth/email/verify/",
    ]

    def __init__(
        self,
        app,
        config: AccessConfig,
        session_manager: SessionManager,
        accounts: AccountDatabase,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        super().__init__(app)
        self._config = config
        self._session_manager = session_manager
        self._accounts = accounts
        self._security_logger = security_logger
        self._clock = clock

    @staticmethod
    def _matches(path: str, prefixes: list[str]) -> bool:
        for prefix in prefixes:
            if path == prefix or path.startswith(prefix):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        if self._matches(path, self.PUBLIC_PATHS):
            return await call_next(request)

        session_token = session_token_from(request)
        if not session_token:
            return await call_next(request)

        try:
            session = self._session_manager.validate_session(session_token)
        except SessionExpiredError:
            return await call_next(request)

        account = self._accounts.get_account_by_id(session.account_id)
        if account is None:
            # Deleted while signed in
            self._session_manager.revoke_session(session.token)
            response = await call_next(request)
            response.delete_cookie(key=SESSION_COOKIE)
            return response

        outcome = check_session_access(
            account,
            self._clock(),
            require_verified=not self._matches(path, self.VERIFICATION_EXEMPT_PATHS),
            enforce_lock=not self._matches(path, self.LOCK_EXEMPT_PATHS),
        )
        if isinstance(outcome, EmailUnverified):
            return self._unverified(request)
        if outcome is not None:
            return self._terminate(request, account, session, outcome)

        request.state.account = account
        request.state.session = session
        return await call_next(request)

    def _terminate(
        self,
        request: Request,
        account: Account,
        session: Session,
        violation: StatusViolation,
    ) -> Response:
        """Invalidate the session and tell the client why."""
        self._session_manager.revoke_session(session.token)
        self._security_logger.log(
            SecurityEvent.SESSION_TERMINATED,
            email=account.email,
            account_id=account.id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("User-Agent"),
            details={"reason": type(violation).__name__, "path": request.url.path},
        )

        if wants_json(request):
            response = self._violation_json(violation)
        else:
            response = RedirectResponse(url=self._violation_redirect(violation), status_code=303)

        response.delete_cookie(key=SESSION_COOKIE)
        return response

    def _violation_json(self, violation: StatusViolation) -> Response:
        if isinstance(violation, AccountLocked):
            return error_json(
                423,
                ErrorCodes.ACCOUNT_LOCKED,
                f"Account locked. Try again in {violation.minutes_remaining} minute(s).",
                details={
                    "minutes_remaining": violation.minutes_remaining,
                    "unlock_time": violation.locked_until.isoformat(),
                },
            )
        if isinstance(violation, AccountInactive):
            return error_json(
                403,
                ErrorCodes.ACCOUNT_INACTIVE,
                "Account inactive. Please contact support to reactivate.",
                details={"support_email": self._config.support_email},
            )
        return error_json(
            403,
            ErrorCodes.ACCOUNT_SUSPENDED,
            "Account suspended. Please contact support.",
            details={"support_email": self._config.support_email},
        )

    @staticmethod
    def _violation_redirect(violation: StatusViolation) -> str:
        if isinstance(violation, AccountLocked):
            return "/login?status=locked"
        if isinstance(violation, AccountInactive):
            return "/account/inactive"
        return "/account/suspended"

    def _unverified(self, request: Request) -> Response:
        if wants_json(request):
            return error_json(
                409,
                ErrorCodes.EMAIL_NOT_VERIFIED,
                "Your email address is not verified.",
                details={"resend_url": "/auth/email/resend", "status_url": "/auth/email/status"},
            )
        return RedirectResponse(url="/email/verify", status_code=303)
