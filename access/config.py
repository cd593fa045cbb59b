"""Access control configuration."""

from pydantic import BaseModel, Field


class AccessConfig(BaseModel):
    """
    Access control configuration.

    Durations use their natural units (seconds for throttle windows,
    minutes for lockouts and links, hours for sessions) so values read
    the way operators think about them.
    """

    # Account lockout
    max_failed_attempts: int = Field(
        default=5,
        description="Failed logins on one account before it is locked",
        ge=1,
        le=50,
    )
    lockout_minutes: int = Field(
        default=15,
        description="How long a locked account stays locked",
        ge=1,
        le=1440,
    )

    # Login throttling per (email, ip)
    rate_limit_attempts: int = Field(
        default=5,
        description="Failed login attempts per email+IP per window",
        ge=1,
        le=100,
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        description="Login throttle window",
        ge=1,
        le=3600,
    )

    # Session settings
    session_expiry_hours: int = Field(
        default=2,
        description="Session lifetime in hours",
        ge=1,
        le=720,
    )
    remember_session_expiry_hours: int = Field(
        default=720,  # 30 days
        description="Session lifetime when 'remember me' is checked",
        ge=1,
        le=2160,
    )

    # Email verification
    verification_expiry_minutes: int = Field(
        default=60,
        description="How long signed verification links remain valid",
        ge=5,
        le=1440,
    )
    verification_resend_limit: int = Field(
        default=3,
        description="Verification emails per account per window",
        ge=1,
    )
    verification_resend_window_seconds: int = Field(
        default=600,
        description="Verification resend window",
        ge=60,
    )

    # Password reset
    password_reset_expiry_minutes: int = Field(
        default=60,
        description="How long reset tokens remain valid",
        ge=5,
        le=1440,
    )
    password_reset_request_limit: int = Field(
        default=3,
        description="Reset link requests per email per window",
        ge=1,
    )
    password_reset_request_window_minutes: int = Field(
        default=5,
        description="Reset link request window",
        ge=1,
    )
    password_reset_attempt_limit: int = Field(
        default=3,
        description="Reset submissions per email per window",
        ge=1,
    )
    password_reset_attempt_window_minutes: int = Field(
        default=10,
        description="Reset submission window",
        ge=1,
    )
    password_reset_status_window_minutes: int = Field(
        default=60,
        description="How far back a reset request counts as recent",
        ge=1,
        le=1440,
    )

    # Password policy and hashing
    password_min_length: int = Field(
        default=8,
        description="Minimum password length",
        ge=8,
        le=128,
    )
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor",
        ge=4,
        le=16,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for verification and reset links",
    )
    app_name: str = Field(
        default="Personal Finance",
        description="Application name for emails",
    )
    support_email: str = Field(
        default="support@personalfinance.local",
        description="Contact address shown to suspended/inactive accounts",
    )
