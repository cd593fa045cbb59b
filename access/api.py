"""HTTP routes for account access."""

import ipaddress
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response

from access.config import AccessConfig
from access.exceptions import NotAuthenticatedError
from access.guard import AccessGuard
from access.outcomes import (
    AccountInactive,
    AccountLocked,
    AccountSuspended,
    InvalidCredentials,
    LoginSuccess,
    RateLimited,
)
from access.password_reset import PasswordResetService
from access.registration import RegistrationService
from access.session import SessionManager
from access.status_middleware import SESSION_COOKIE, session_token_from
from access.types import (
    Account,
    CancelResetRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegistrationRequest,
    ResetPasswordRequest,
    Session,
    UpdateEmailRequest,
)
from access.verification import VerificationService
from api.base import error_json, success_response, ErrorCodes


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def require_account(request: Request) -> Account:
    """Dependency: the account attached by AccountStatusMiddleware."""
    account = getattr(request.state, "account", None)
    if account is None:
        raise NotAuthenticatedError("Authentication required")
    return account


def _account_payload(account: Account) -> dict:
    return {
        "id": str(account.id),
        "email": account.email,
        "first_name": account.first_name,
        "last_name": account.last_name,
        "full_name": account.full_name,
        "email_verified": account.email_verified,
        "preferred_currency": account.preferred_currency,
        "timezone": account.timezone,
    }


def _set_session_cookie(response: Response, session: Session) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session.token,
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=int((session.expires_at - session.created_at).total_seconds()),
    )


def create_access_router(
    config: AccessConfig,
    guard: AccessGuard,
    sessions: SessionManager,
    registration: RegistrationService,
    verification: VerificationService,
    password_reset: PasswordResetService,
) -> APIRouter:
    """Create access router with injected services."""
    router = APIRouter(tags=["auth"])

    @router.post("/login")
    def login(request: Request, response: Response, body: LoginRequest):
        """Password login.

        Sets session_token cookie on success and returns the token for
        API clients.
        """
        result = guard.attempt_login(
            email=body.email,
            password=body.password,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            remember=body.remember,
            device_name=body.device_name,
        )

        if isinstance(result, RateLimited):
            return error_json(
                429,
                ErrorCodes.RATE_LIMITED,
                f"Too many login attempts. Please try again in {result.seconds_remaining} seconds.",
                details={"retry_after_seconds": result.seconds_remaining},
                headers={"Retry-After": str(result.seconds_remaining)},
            )
        if isinstance(result, AccountLocked):
            return error_json(
                423,
                ErrorCodes.ACCOUNT_LOCKED,
                f"Account locked. Try again in {result.minutes_remaining} minute(s).",
                details={
                    "minutes_remaining": result.minutes_remaining,
                    "unlock_time": result.locked_until.isoformat(),
                },
            )
        if isinstance(result, AccountSuspended):
            return error_json(
                403,
                ErrorCodes.ACCOUNT_SUSPENDED,
                "Account suspended. Please contact support.",
                details={"support_email": config.support_email},
            )
        if isinstance(result, AccountInactive):
            return error_json(
                403,
                ErrorCodes.ACCOUNT_INACTIVE,
                "Account inactive. Please contact support to reactivate.",
                details={"support_email": config.support_email},
            )
        if isinstance(result, InvalidCredentials):
            return error_json(
                401,
                ErrorCodes.INVALID_CREDENTIALS,
                "These credentials do not match our records.",
            )

        if not isinstance(result, LoginSuccess):
            raise TypeError(f"Unexpected login outcome: {type(result).__name__}")

        # A token presented before login never survives it
        previous_token = session_token_from(request)
        if previous_token and previous_token != result.session.token:
            sessions.revoke_session(previous_token)
        _set_session_cookie(response, result.session)

        return success_response({
            "account": _account_payload(result.account),
            "session_token": result.session.token,
            "csrf_token": result.session.csrf_token,
            "expires_at": result.session.expires_at.isoformat(),
            "email_verified": result.account.email_verified,
        })

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Logout - revoke session and clear cookie."""
        session_token = session_token_from(request)

        if session_token:
            guard.logout(
                session_token=session_token,
                ip_address=_get_client_ip(request),
            )

        response.delete_cookie(key=SESSION_COOKIE)
        return success_response({"message": "Logged out successfully"})

    @router.post("/register", status_code=201)
    def register(request: Request, response: Response, body: RegistrationRequest):
        """Create an account and sign it in; a verification email is sent."""
        ip_address = _get_client_ip(request)
        account = registration.register(
            body,
            ip_address=ip_address,
            user_agent=request.headers.get("User-Agent"),
        )

        session = sessions.create_session(account.id, ip_address=ip_address)
        _set_session_cookie(response, session)

        return success_response({
            "account": _account_payload(account),
            "session_token": session.token,
            "csrf_token": session.csrf_token,
            "message": "Registration successful. Please check your email to verify your address.",
        })

    @router.get("/check-email")
    def check_email(email: str = Query(..., min_length=3, max_length=255)):
        """Whether an email address is free to register."""
        return success_response({"available": registration.is_email_available(email)})

    @router.get("/email/verify/{account_id}/{email_hash}")
    def verify_email(
        request: Request,
        account_id: UUID,
        email_hash: str,
        expires: int = Query(...),
        signature: str = Query(..., min_length=64, max_length=64),
        account: Account = Depends(require_account),
    ):
        """Consume a signed verification link for the signed-in account."""
        verified = verification.verify(
            account,
            account_id=account_id,
            hashed_email=email_hash,
            expires=expires,
            signature=signature,
            ip_address=_get_client_ip(request),
        )
        message = "Email verified successfully." if verified else "Email already verified."
        return success_response({"verified": True, "newly_verified": verified, "message": message})

    @router.post("/email/resend")
    def resend_verification(request: Request, account: Account = Depends(require_account)):
        """Send another verification email."""
        sent = verification.resend(account, ip_address=_get_client_ip(request))
        message = "Verification link sent." if sent else "Email already verified."
        return success_response({"sent": sent, "message": message})

    @router.get("/email/status")
    def verification_status(account: Account = Depends(require_account)):
        return success_response(verification.status(account))

    @router.post("/email/update")
    def update_email(request: Request, body: UpdateEmailRequest, account: Account = Depends(require_account)):
        """Change email address; the new one must be verified again."""
        updated = verification.change_email(
            account,
            new_email=body.email,
            current_password=body.password,
            ip_address=_get_client_ip(request),
        )
        return success_response({
            "message": "Email updated successfully. Please verify your new email address.",
            "new_email": updated.email,
            "verification_required": True,
        })

    @router.post("/password/forgot")
    def forgot_password(request: Request, body: ForgotPasswordRequest):
        """Request a reset link. The answer never reveals whether the email exists."""
        result = password_reset.request_reset(body.email, ip_address=_get_client_ip(request))
        return success_response({"message": result.message})

    @router.post("/password/reset")
    def reset_password(request: Request, body: ResetPasswordRequest):
        """Set a new password with a reset token. All sessions are ended."""
        password_reset.reset(
            email=body.email,
            token=body.token,
            password=body.password,
            password_confirmation=body.password_confirmation,
            ip_address=_get_client_ip(request),
        )
        return success_response({
            "message": "Your password has been reset. Please log in with your new password.",
        })

    @router.get("/password/check-token")
    def check_reset_token(
        email: str = Query(..., max_length=255),
        token: str = Query(..., max_length=128),
    ):
        return success_response({"valid": password_reset.check_token(email, token)})

    @router.post("/password/cancel")
    def cancel_reset(request: Request, body: CancelResetRequest):
        """Withdraw a pending reset using the token from the reset email."""
        password_reset.cancel_reset(body.email, body.token, ip_address=_get_client_ip(request))
        return success_response({"message": "Password reset request cancelled."})

    @router.get("/password/status")
    def reset_status(account: Account = Depends(require_account)):
        """Whether a reset was requested for the signed-in account recently."""
        recent = password_reset.has_recent_request(account.email)
        return success_response({
            "has_recent_reset_request": recent,
            "message": (
                "A password reset request was sent recently."
                if recent
                else "No recent password reset request found."
            ),
        })

    @router.get("/me")
    def get_current_account(request: Request, account: Account = Depends(require_account)):
        """Get current authenticated account."""
        session = request.state.session
        return success_response({
            "account": _account_payload(account),
            "csrf_token": session.csrf_token,
            "session_expires_at": session.expires_at.isoformat(),
        })

    return router
