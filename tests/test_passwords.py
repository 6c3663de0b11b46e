"""Unit tests for auth/passwords.py -- bcrypt hashing and verification.

Covers:
- hash() salts: same input, different digests, both verify
- verify() rejects wrong secrets and never raises on malformed digests
- 72-byte limit enforced at hash time
"""

import pytest

from auth.passwords import PasswordHasher


class TestHash:
    def test_same_secret_gives_different_digests(self, hasher: PasswordHasher) -> None:
        first = hasher.hash("hunter22")
        second = hasher.hash("hunter22")
        assert first != second
        assert hasher.verify("hunter22", first)
        assert hasher.verify("hunter22", second)

    def test_digest_uses_configured_cost(self) -> None:
        digest = PasswordHasher(rounds=5).hash("pw")
        assert digest.startswith("$2b$05$")

    def test_rejects_secret_over_72_bytes(self, hasher: PasswordHasher) -> None:
        with pytest.raises(ValueError):
            hasher.hash("x" * 73)

    def test_multibyte_limit_counts_bytes(self, hasher: PasswordHasher) -> None:
        """25 three-byte characters is 75 bytes even though len() is 25."""
        assert not hasher.accepts("€" * 25)
        assert hasher.accepts("€" * 24)


class TestVerify:
    def test_wrong_secret(self, hasher: PasswordHasher) -> None:
        assert not hasher.verify("wrong", hasher.hash("right"))

    @pytest.mark.parametrize("digest", ["", None, "not-a-bcrypt-hash", "$2b$04$short"])
    def test_malformed_digest_is_false_not_error(self, hasher: PasswordHasher, digest) -> None:
        assert hasher.verify("anything", digest) is False

    def test_burn_does_not_raise(self, hasher: PasswordHasher) -> None:
        hasher.burn("whatever")

    def test_accepts_rejects_empty(self, hasher: PasswordHasher) -> None:
        assert not hasher.accepts("")
