"""Tests for password hashing and the password policy."""

import pytest

from access.exceptions import PasswordPolicyError
from access.passwords import enforce_password_policy, password_policy_errors


class TestPasswordHasher:
    """bcrypt hashing."""

    def test_hash_verifies(self, hasher):
        hashed = hasher.hash("S3cure-pass")

        assert hashed.startswith("$2")
        assert hasher.verify("S3cure-pass", hashed) is True

    def test_wrong_password(self, hasher):
        hashed = hasher.hash("S3cure-pass")

        assert hasher.verify("s3cure-pass", hashed) is False

    def test_salted(self, hasher):
        assert hasher.hash("S3cure-pass") != hasher.hash("S3cure-pass")

    def test_missing_hash_is_false(self, hasher):
        """No account: a dummy hash is checked and the answer is always False."""
        assert hasher.verify("dummy-password-for-timing", None) is False

    def test_malformed_hash_is_false(self, hasher):
        assert hasher.verify("anything", "plaintext") is False


class TestPasswordPolicy:
    """Length and character class rules."""

    def test_strong_password_passes(self):
        assert password_policy_errors("Correct-Horse-9") == []

    @pytest.mark.parametrize(
        "password, fragment",
        [
            ("Sh0rt!", "at least 8"),
            ("alllowercase1!", "uppercase and lowercase"),
            ("NoDigitsHere!", "number"),
            ("NoSymbols123", "symbol"),
            ("12345678!", "letter"),
        ],
    )
    def test_rule_violations(self, password, fragment):
        errors = password_policy_errors(password)

        assert any(fragment in error for error in errors)

    def test_reports_every_violation(self):
        assert len(password_policy_errors("abc")) >= 4

    def test_custom_min_length(self):
        assert password_policy_errors("Abcdef1!x", min_length=12)

    def test_too_long_for_bcrypt(self):
        errors = password_policy_errors("Aa1!" + "é" * 40)

        assert any("72 bytes" in error for error in errors)

    def test_enforce_raises_with_errors(self):
        with pytest.raises(PasswordPolicyError) as exc_info:
            enforce_password_policy("weak")

        assert exc_info.value.errors == password_policy_errors("weak")
