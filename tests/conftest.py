"""Shared test fixtures for the access test suite.

Infrastructure (Valkey, Postgres, email gateway) is replaced with the
in-memory doubles in tests/fakes.py, all driven by one FakeClock.
"""

import pytest
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from fastapi.testclient import TestClient

from access.admin import AccountAdministration
from access.config import AccessConfig
from access.guard import AccessGuard
from access.password_reset import PasswordResetService
from access.passwords import PasswordHasher
from access.rate_limiter import RateLimiter
from access.registration import RegistrationService
from access.security_logger import SecurityLogger
from access.session import SessionManager
from access.types import Account, AccountStatus
from access.verification import VerificationService
from api.app import AccessServices, create_app
from clients.email_client import EmailGatewayClient
from tests.fakes import (
    SIGNING_KEY,
    START_TIME,
    TEST_ACCOUNT_EMAIL,
    TEST_ACCOUNT_ID,
    TEST_PASSWORD,
    FakeAccountDatabase,
    FakeClock,
    FakeValkey,
)


# =============================================================================
# INFRASTRUCTURE FIXTURES
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START_TIME)


@pytest.fixture
def valkey(clock) -> FakeValkey:
    return FakeValkey(clock)


@pytest.fixture
def accounts(clock) -> FakeAccountDatabase:
    return FakeAccountDatabase(clock)


@pytest.fixture
def config() -> AccessConfig:
    """Production defaults except for a cheap bcrypt cost."""
    return AccessConfig(bcrypt_rounds=4, app_base_url="https://app.example.com")


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture(scope="session")
def test_password_hash(hasher) -> str:
    return hasher.hash(TEST_PASSWORD)


@pytest.fixture
def security_logger():
    """Mock SecurityLogger; tests assert on the events it receives."""
    return Mock(spec=SecurityLogger)


@pytest.fixture
def mock_email_client():
    """Mock email client - never talks to the gateway."""
    return Mock(spec=EmailGatewayClient)


# =============================================================================
# ACCOUNT FIXTURES
# =============================================================================


@pytest.fixture
def make_account(accounts, clock, test_password_hash):
    """Factory that stores an account and returns it.

    Defaults describe a healthy account: active, verified, no failures.
    """

    def _make(
        account_id: UUID = TEST_ACCOUNT_ID,
        email: str = TEST_ACCOUNT_EMAIL,
        **overrides,
    ) -> Account:
        fields = {
            "id": account_id,
            "email": email,
            "password_hash": test_password_hash,
            "first_name": "Alice",
            "last_name": "Archer",
            "status": AccountStatus.ACTIVE,
            "failed_login_attempts": 0,
            "locked_until": None,
            "email_verified_at": clock(),
            "created_at": clock(),
        }
        fields.update(overrides)
        return accounts.add(Account(**fields))

    return _make


@pytest.fixture
def account(make_account) -> Account:
    """The primary test account."""
    return make_account()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def rate_limiter(valkey, config) -> RateLimiter:
    return RateLimiter(valkey, config)


@pytest.fixture
def sessions(valkey, config, clock) -> SessionManager:
    return SessionManager(valkey, config, clock=clock)


@pytest.fixture
def guard(config, accounts, rate_limiter, sessions, hasher, security_logger, clock) -> AccessGuard:
    return AccessGuard(config, accounts, rate_limiter, sessions, hasher, security_logger, clock=clock)


@pytest.fixture
def verification(config, accounts, hasher, mock_email_client, rate_limiter, security_logger, clock):
    return VerificationService(
        config,
        accounts,
        hasher,
        mock_email_client,
        rate_limiter,
        security_logger,
        SIGNING_KEY,
        clock=clock,
    )


@pytest.fixture
def registration(config, accounts, hasher, verification, security_logger):
    return RegistrationService(config, accounts, hasher, verification, security_logger)


@pytest.fixture
def password_reset(
    config, accounts, hasher, rate_limiter, sessions, mock_email_client, security_logger, clock
):
    return PasswordResetService(
        config,
        accounts,
        hasher,
        rate_limiter,
        sessions,
        mock_email_client,
        security_logger,
        clock=clock,
    )


@pytest.fixture
def admin(accounts, sessions, security_logger, clock):
    return AccountAdministration(accounts, sessions, security_logger, clock=clock)


# =============================================================================
# HTTP FIXTURES
# =============================================================================


@pytest.fixture
def services(
    config,
    accounts,
    rate_limiter,
    sessions,
    security_logger,
    guard,
    verification,
    registration,
    password_reset,
    admin,
    valkey,
    clock,
) -> AccessServices:
    return AccessServices(
        config=config,
        accounts=accounts,
        rate_limiter=rate_limiter,
        sessions=sessions,
        security_logger=security_logger,
        guard=guard,
        verification=verification,
        registration=registration,
        password_reset=password_reset,
        admin=admin,
        valkey=valkey,
        clock=clock,
    )


@pytest.fixture
def app(services):
    return create_app(services)


@pytest.fixture
def client(app):
    """TestClient over https so the secure session cookie round-trips."""
    return TestClient(app, base_url="https://testserver")
