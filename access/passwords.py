"""Password hashing (bcrypt) and password policy."""

import re

import bcrypt

from access.exceptions import PasswordPolicyError

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")

MAX_PASSWORD_LENGTH = 128


class PasswordHasher:
    """bcrypt hasher.

    bcrypt only looks at the first 72 bytes of input; longer passwords are
    rejected by the policy before they get here.
    """

    def __init__(self, rounds: int = 12):
        self._rounds = rounds
        # Checked against when the account doesn't exist, so a miss costs
        # the same as a wrong password.
        self._dummy_hash = self.hash("dummy-password-for-timing")

    def hash(self, plain: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Constant-time check. Returns False for missing or malformed hashes."""
        candidate = hashed if hashed is not None else self._dummy_hash
        try:
            matched = bcrypt.checkpw(plain.encode("utf-8"), candidate.encode("utf-8"))
        except ValueError:
            # Malformed hash, or input over bcrypt's 72-byte limit
            return False
        return matched and hashed is not None


def password_policy_errors(password: str, min_length: int = 8) -> list[str]:
    """List every policy rule the password breaks (empty if it passes)."""
    errors: list[str] = []

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        errors.append(f"Password must be at most {MAX_PASSWORD_LENGTH} characters")
    elif len(password.encode("utf-8")) > 72:
        errors.append("Password must be at most 72 bytes")

    if not _LETTER.search(password):
        errors.append("Password must include at least 1 letter")
    if not (_UPPER.search(password) and _LOWER.search(password)):
        errors.append("Password must include both uppercase and lowercase letters")
    if not _DIGIT.search(password):
        errors.append("Password must include at least 1 number")
    if not _SYMBOL.search(password):
        errors.append("Password must include at least 1 symbol")

    return errors


def enforce_password_policy(password: str, min_length: int = 8) -> None:
    """Raises PasswordPolicyError listing all violations."""
    errors = password_policy_errors(password, min_length)
    if errors:
        raise PasswordPolicyError(errors)
