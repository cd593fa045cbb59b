"""Pydantic models for the access domain."""

import re
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from utils.timezone import is_valid_timezone

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "CAD", "AUD", "JPY", "CHF", "CNY", "INR", "KRW")

_NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-'.]+$")


def normalize_email(email: str) -> str:
    """Canonical form used for lookups, storage and throttle keys."""
    return email.strip().lower()


class AccountStatus(Enum):
    """
    Administrative account state.

    UNKNOWN is never stored; it stands for any value the database holds
    that is not one of the real states. Every consumer must decide what
    UNKNOWN means (the access checks treat it as SUSPENDED).
    """

    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: "str | AccountStatus | None") -> "AccountStatus":
        """Map a stored value onto a status, falling back to UNKNOWN."""
        if isinstance(raw, AccountStatus):
            return raw
        if isinstance(raw, str):
            try:
                status = cls(raw.strip().lower())
            except ValueError:
                return cls.UNKNOWN
            return status
        return cls.UNKNOWN


class Account(BaseModel):
    """A registered user of the application."""

    id: UUID
    email: str
    password_hash: str = Field(..., repr=False)
    first_name: str
    last_name: str
    status: AccountStatus
    failed_login_attempts: int = Field(default=0, ge=0)
    locked_until: datetime | None = None
    email_verified_at: datetime | None = None
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    preferred_currency: str = "USD"
    timezone: str = "UTC"
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return AccountStatus.parse(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None

    def is_locked(self, now: datetime) -> bool:
        """Locked only while locked_until is strictly in the future."""
        return self.locked_until is not None and self.locked_until > now


class Session(BaseModel):
    """An authenticated session."""

    token: str = Field(..., description="Session token (opaque string)")
    account_id: UUID
    csrf_token: str = Field(..., description="Anti-forgery token bound to this session")
    remember: bool = False
    device_name: str | None = None
    ip_address: str | None = None
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class LoginRequest(BaseModel):
    """Login form / API payload."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=1024)
    remember: bool = False
    device_name: str | None = Field(default=None, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value


class RegistrationRequest(BaseModel):
    """Registration payload."""

    first_name: str = Field(..., min_length=2, max_length=255)
    last_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., max_length=1024)
    password_confirmation: str
    preferred_currency: str = "USD"
    timezone: str = "UTC"
    terms_accepted: bool
    privacy_accepted: bool

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("first_name", "last_name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _NAME_PATTERN.match(value):
            raise ValueError("may only contain letters, spaces, hyphens, apostrophes and periods")
        return value

    @field_validator("preferred_currency", mode="before")
    @classmethod
    def _upper_currency(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("preferred_currency")
    @classmethod
    def _check_currency(cls, value: str) -> str:
        if value not in SUPPORTED_CURRENCIES:
            raise ValueError("currency is not supported")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError("unknown timezone")
        return value

    @model_validator(mode="after")
    def _check_agreements(self) -> "RegistrationRequest":
        if not self.terms_accepted:
            raise ValueError("You must accept the Terms of Service to create an account.")
        if not self.privacy_accepted:
            raise ValueError("You must accept the Privacy Policy to create an account.")
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class ForgotPasswordRequest(BaseModel):
    """Request payload for a password reset link."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value


class ResetPasswordRequest(BaseModel):
    """Request payload to set a new password with a reset token."""

    email: EmailStr
    token: str = Field(..., min_length=64, max_length=64)
    password: str = Field(..., max_length=1024)
    password_confirmation: str

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value


class PasswordResetToken(BaseModel):
    """A stored password reset request. Only the token's hash is kept."""

    email: str
    token_hash: str
    created_at: datetime


class CancelResetRequest(BaseModel):
    """Withdraw a pending reset, proven by the token from the reset email."""

    email: EmailStr
    token: str = Field(..., min_length=64, max_length=64)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value


class UpdateEmailRequest(BaseModel):
    """Change the signed-in account's email address."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=1024)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value
