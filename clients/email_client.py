"""
Email gateway client for sending emails via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication.
Gateway templates render the message body; this client ships only the
recipient and the link it points at.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Args:
            payload: Dict to send as JSON

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=10,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except json.JSONDecodeError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_verification_email(self, email: str, first_name: str, verification_url: str) -> None:
        """
        Send email-address verification link via gateway.

        Args:
            email: Recipient email address
            first_name: Name used in the greeting
            verification_url: Signed, expiring verification URL

        Raises:
            EmailGatewayError: On any failure
        """
        payload = {
            "type": "verify_email",
            "email": email,
            "first_name": first_name,
            "url": verification_url,
        }
        self._sign_and_send(payload)
        logger.info(f"Verification email sent to {email}")

    def send_password_reset(self, email: str, reset_url: str, expires_minutes: int) -> None:
        """
        Send password reset link via gateway.

        Args:
            email: Recipient email address
            reset_url: URL carrying the plaintext reset token
            expires_minutes: Link lifetime, shown in the email

        Raises:
            EmailGatewayError: On any failure
        """
        payload = {
            "type": "password_reset",
            "email": email,
            "url": reset_url,
            "expires_minutes": expires_minutes,
        }
        self._sign_and_send(payload)
        logger.info(f"Password reset email sent to {email}")
