"""Attempt throttling backed by Valkey counters.

Fixed window: the TTL is attached when a counter is created, and the
counter disappears on its own once the window passes (no sweeper).
"""

import unicodedata

from clients.valkey_client import ValkeyClient
from access.config import AccessConfig
from access.types import normalize_email


def throttle_key(email: str, ip_address: str | None) -> str:
    """Login throttle key: transliterated, lowercased email + "|" + client IP."""
    ascii_email = (
        unicodedata.normalize("NFKD", normalize_email(email))
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    return f"{ascii_email}|{ip_address or 'unknown'}"


class RateLimiter:
    """Counts attempts per key within a window using Valkey."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient, config: AccessConfig):
        self._valkey = valkey
        self._config = config

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def hit(self, key: str, decay_seconds: int | None = None) -> int:
        """Record an attempt. Returns the count within the current window."""
        window = decay_seconds or self._config.rate_limit_window_seconds
        return self._valkey.incr_with_window(self._key(key), window)

    def attempts(self, key: str) -> int:
        """Attempts recorded in the current window (0 if none)."""
        current = self._valkey.get(self._key(key))
        return int(current) if current is not None else 0

    def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        """True once the window holds max_attempts or more."""
        return self.attempts(key) >= max_attempts

    def remaining(self, key: str, max_attempts: int) -> int:
        """Attempts left before the key is throttled."""
        return max(max_attempts - self.attempts(key), 0)

    def available_in(self, key: str) -> int:
        """Seconds until the window resets; 0 when nothing is recorded."""
        ttl = self._valkey.ttl(self._key(key))
        if ttl == -2:
            return 0
        if ttl < 0:
            # Counter without TTL should not exist; report a full window.
            return self._config.rate_limit_window_seconds
        return max(ttl, 1)  # At least 1 second

    def clear(self, key: str) -> None:
        """Drop the counter immediately (e.g. after a successful login)."""
        self._valkey.delete(self._key(key))
