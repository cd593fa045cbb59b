"""Session token lifecycle management.

Sessions are stored in Valkey with TTL matching session expiry.
Tokens are cryptographically random (secrets.token_urlsafe); every login
gets a brand-new token, so a token planted before login is never promoted.
Each account keeps an index set of its tokens for bulk revocation.
"""

import secrets
from datetime import timedelta
from uuid import UUID

from clients.valkey_client import ValkeyClient
from access.config import AccessConfig
from access.types import Session
from access.exceptions import SessionExpiredError
from utils.timezone import Clock, now_utc, parse_iso


class SessionManager:
    """Session token lifecycle management.

    Sessions are stored in Valkey with TTL matching session expiry.
    Activity slides the expiry forward.
    """

    KEY_PREFIX = "session:"
    INDEX_PREFIX = "account_sessions:"

    def __init__(self, valkey: ValkeyClient, config: AccessConfig, clock: Clock = now_utc):
        self._valkey = valkey
        self._config = config
        self._clock = clock

    def _key(self, token: str) -> str:
        """Generate Valkey key for session token."""
        return f"{self.KEY_PREFIX}{token}"

    def _index_key(self, account_id: UUID) -> str:
        return f"{self.INDEX_PREFIX}{account_id}"

    def _lifetime(self, remember: bool) -> timedelta:
        hours = (
            self._config.remember_session_expiry_hours
            if remember
            else self._config.session_expiry_hours
        )
        return timedelta(hours=hours)

    def _store(self, session: Session) -> None:
        ttl = int(self._lifetime(session.remember).total_seconds())
        self._valkey.set_json(
            self._key(session.token),
            {
                "account_id": str(session.account_id),
                "csrf_token": session.csrf_token,
                "remember": session.remember,
                "device_name": session.device_name,
                "ip_address": session.ip_address,
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
                "last_activity_at": session.last_activity_at.isoformat(),
            },
            expire_seconds=ttl,
        )
        self._valkey.sadd(
            self._index_key(session.account_id),
            session.token,
            expire_seconds=int(
                timedelta(hours=self._config.remember_session_expiry_hours).total_seconds()
            ),
        )

    def create_session(
        self,
        account_id: UUID,
        remember: bool = False,
        device_name: str | None = None,
        ip_address: str | None = None,
    ) -> Session:
        """Create new session for account with fresh session and CSRF tokens."""
        now = self._clock()
        session = Session(
            token=secrets.token_urlsafe(32),
            account_id=account_id,
            csrf_token=secrets.token_urlsafe(32),
            remember=remember,
            device_name=device_name,
            ip_address=ip_address,
            created_at=now,
            expires_at=now + self._lifetime(remember),
            last_activity_at=now,
        )
        self._store(session)
        return session

    def validate_session(self, token: str) -> Session:
        """Validate session token and return session.

        Raises SessionExpiredError if token invalid or expired.
        Extends session on activity (sliding window).
        """
        data = self._valkey.get_json(self._key(token))

        if data is None:
            raise SessionExpiredError("Session not found or expired")

        session = Session(
            token=token,
            account_id=UUID(data["account_id"]),
            csrf_token=data["csrf_token"],
            remember=data.get("remember", False),
            device_name=data.get("device_name"),
            ip_address=data.get("ip_address"),
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
            last_activity_at=parse_iso(data["last_activity_at"]),
        )

        now = self._clock()

        # Belt and suspenders - Valkey TTL should handle this
        if now > session.expires_at:
            self.revoke_session(token)
            raise SessionExpiredError("Session expired")

        return self._extend_session(session)

    def _extend_session(self, session: Session) -> Session:
        """Extend session expiry and update last_activity_at."""
        now = self._clock()
        updated = session.model_copy(
            update={
                "expires_at": now + self._lifetime(session.remember),
                "last_activity_at": now,
            }
        )
        self._store(updated)
        return updated

    def revoke_session(self, token: str) -> None:
        """Revoke session (logout). Its CSRF token dies with it.

        Safe to call with nonexistent token.
        """
        data = self._valkey.get_json(self._key(token))
        self._valkey.delete(self._key(token))
        if data is not None:
            self._valkey.srem(self._index_key(UUID(data["account_id"])), token)

    def revoke_all_sessions(self, account_id: UUID) -> int:
        """Revoke every session of an account. Returns count revoked."""
        index_key = self._index_key(account_id)
        tokens = self._valkey.smembers(index_key)
        revoked = 0
        for token in tokens:
            if self._valkey.delete(self._key(token)):
                revoked += 1
        self._valkey.delete(index_key)
        return revoked
