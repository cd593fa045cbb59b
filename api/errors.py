"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from access.exceptions import (
    AccessError,
    AccountInactiveError,
    AccountNotFoundError,
    AccountSuspendedError,
    EmailAlreadyRegisteredError,
    IncorrectPasswordError,
    InvalidSignatureError,
    InvalidTokenError,
    NotAuthenticatedError,
    PasswordPolicyError,
    RateLimitedError,
    SessionExpiredError,
)
from api.base import error_json, error_response, ErrorCodes
from clients.email_client import EmailGatewayError

logger = logging.getLogger(__name__)

# Exception type -> (status code, error code). First match in MRO order wins.
_ACCESS_ERRORS = {
    InvalidTokenError: (400, ErrorCodes.INVALID_TOKEN),
    InvalidSignatureError: (403, ErrorCodes.INVALID_SIGNATURE),
    EmailAlreadyRegisteredError: (409, ErrorCodes.EMAIL_TAKEN),
    IncorrectPasswordError: (422, ErrorCodes.INCORRECT_PASSWORD),
    AccountNotFoundError: (404, ErrorCodes.NOT_FOUND),
    AccountSuspendedError: (403, ErrorCodes.ACCOUNT_SUSPENDED),
    AccountInactiveError: (403, ErrorCodes.ACCOUNT_INACTIVE),
    SessionExpiredError: (401, ErrorCodes.SESSION_EXPIRED),
    NotAuthenticatedError: (401, ErrorCodes.NOT_AUTHENTICATED),
}


def access_error_response(exc: AccessError) -> JSONResponse:
    """Translate an access exception into the error envelope."""
    if isinstance(exc, RateLimitedError):
        return error_json(
            429,
            ErrorCodes.RATE_LIMITED,
            f"Too many requests. Please wait {exc.retry_after_seconds} seconds.",
            details={"retry_after_seconds": exc.retry_after_seconds},
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    if isinstance(exc, PasswordPolicyError):
        return error_json(
            422,
            ErrorCodes.PASSWORD_POLICY,
            "The password does not meet the requirements.",
            details={"errors": exc.errors},
        )

    for exc_type in type(exc).__mro__:
        if exc_type in _ACCESS_ERRORS:
            status_code, code = _ACCESS_ERRORS[exc_type]
            return error_json(status_code, code, str(exc))

    return error_json(400, ErrorCodes.INVALID_REQUEST, str(exc))


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        return access_error_response(exc)

    @app.exception_handler(EmailGatewayError)
    async def email_gateway_error_handler(request: Request, exc: EmailGatewayError):
        logger.error("Email gateway failure: %s", exc)
        return error_json(
            503,
            ErrorCodes.SERVICE_UNAVAILABLE,
            "Email could not be sent. Please try again later.",
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return error_json(404, ErrorCodes.NOT_FOUND, message)
        return error_json(400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                "The given data was invalid.",
                details={"errors": [_describe(error) for error in exc.errors()]},
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return error_json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")


def _describe(error: dict) -> dict:
    # exc.errors() may hold the raw exception under "ctx"; keep JSON-safe parts only
    return {
        "loc": [str(part) for part in error.get("loc", ())],
        "msg": str(error.get("msg", "")),
        "type": str(error.get("type", "")),
    }
