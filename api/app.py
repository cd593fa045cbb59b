"""FastAPI application assembly."""

import logging
from dataclasses import dataclass

import redis
from fastapi import FastAPI

from access.admin import AccountAdministration
from access.api import create_access_router
from access.config import AccessConfig
from access.database import AccountDatabase
from access.guard import AccessGuard
from access.password_reset import PasswordResetService
from access.passwords import PasswordHasher
from access.rate_limiter import RateLimiter
from access.registration import RegistrationService
from access.security_logger import SecurityLogger
from access.session import SessionManager
from access.status_middleware import AccountStatusMiddleware
from access.verification import VerificationService
from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


@dataclass
class AccessServices:
    """Everything the HTTP layer needs, wired to one set of clients."""

    config: AccessConfig
    accounts: AccountDatabase
    rate_limiter: RateLimiter
    sessions: SessionManager
    security_logger: SecurityLogger
    guard: AccessGuard
    verification: VerificationService
    registration: RegistrationService
    password_reset: PasswordResetService
    admin: AccountAdministration
    valkey: ValkeyClient
    clock: Clock = now_utc


def build_access_services(
    postgres: PostgresClient,
    valkey: ValkeyClient,
    email_client: EmailGatewayClient,
    signing_key: str,
    config: AccessConfig | None = None,
    clock: Clock = now_utc,
) -> AccessServices:
    """Wire the access services over the given infrastructure clients."""
    config = config or AccessConfig()
    accounts = AccountDatabase(postgres)
    rate_limiter = RateLimiter(valkey, config)
    sessions = SessionManager(valkey, config, clock=clock)
    security_logger = SecurityLogger(postgres)
    hasher = PasswordHasher(rounds=config.bcrypt_rounds)

    verification = VerificationService(
        config, accounts, hasher, email_client, rate_limiter, security_logger, signing_key, clock=clock
    )

    return AccessServices(
        config=config,
        accounts=accounts,
        rate_limiter=rate_limiter,
        sessions=sessions,
        security_logger=security_logger,
        guard=AccessGuard(
            config, accounts, rate_limiter, sessions, hasher, security_logger, clock=clock
        ),
        verification=verification,
        registration=RegistrationService(config, accounts, hasher, verification, security_logger),
        password_reset=PasswordResetService(
            config,
            accounts,
            hasher,
            rate_limiter,
            sessions,
            email_client,
            security_logger,
            clock=clock,
        ),
        admin=AccountAdministration(accounts, sessions, security_logger, clock=clock),
        valkey=valkey,
        clock=clock,
    )


def build_access_services_from_vault(config: AccessConfig | None = None) -> AccessServices:
    """Production wiring: every secret comes from Vault."""
    from clients.vault_client import (
        get_database_url,
        get_email_config,
        get_signing_key,
        get_valkey_url,
    )

    email_config = get_email_config()
    return build_access_services(
        postgres=PostgresClient(get_database_url()),
        valkey=ValkeyClient(get_valkey_url()),
        email_client=EmailGatewayClient(
            gateway_url=email_config["gateway_url"],
            api_key=email_config["api_key"],
            hmac_secret=email_config["hmac_secret"],
        ),
        signing_key=get_signing_key(),
        config=config,
    )


def create_app(services: AccessServices | None = None) -> FastAPI:
    """Create the application.

    Middleware order: RequestIDMiddleware wraps AccountStatusMiddleware,
    so every response, including status rejections, carries X-Request-ID.
    """
    if services is None:
        services = build_access_services_from_vault()

    app = FastAPI(title=services.config.app_name)

    app.add_middleware(
        AccountStatusMiddleware,
        config=services.config,
        session_manager=services.sessions,
        accounts=services.accounts,
        security_logger=services.security_logger,
        clock=services.clock,
    )
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    app.include_router(
        create_access_router(
            config=services.config,
            guard=services.guard,
            sessions=services.sessions,
            registration=services.registration,
            verification=services.verification,
            password_reset=services.password_reset,
        ),
        prefix="/auth",
    )

    @app.get("/health")
    def health():
        try:
            valkey_ok = services.valkey.ping()
        except redis.RedisError:
            logger.warning("Health check: Valkey unreachable", exc_info=True)
            valkey_ok = False
        return success_response({"status": "ok" if valkey_ok else "degraded", "valkey": valkey_ok})

    app.state.services = services
    return app
