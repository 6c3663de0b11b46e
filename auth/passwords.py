"""
auth/passwords.py -- Secret hashing and verification (bcrypt).

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection hashes a password longer than 72 bytes, which bcrypt 4.x+ rejects.
Direct usage has no compatibility shim.

Bcrypt is the right primitive for low-entropy secrets: the cost factor makes
brute force expensive, the salt is random per hash and embedded in the
digest, and checkpw compares in constant time.

The cost factor is a constructor argument rather than a module global. The
bootstrap passes Settings.bcrypt_rounds; tests pass 4.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes. Longer secrets are refused at hash
# time instead of being silently truncated.
MAX_SECRET_BYTES = 72


class PasswordHasher:
    """One-way password hashing with timing-equalized verification.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("correct horse")
        hasher.verify("correct horse", digest)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first failed lookup is not measurably slower
        # than later ones. burn() verifies against it when a login names an
        # unknown user, so response time does not reveal which usernames exist.
        self._dummy_hash = self.hash("sessionwarden_timing_dummy")

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt digest of secret.

        Raises ValueError if secret is longer than 72 bytes once UTF-8 encoded.
        """
        raw = secret.encode("utf-8")
        if len(raw) > MAX_SECRET_BYTES:
            raise ValueError(f"secret exceeds {MAX_SECRET_BYTES} bytes")
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, digest: str | None) -> bool:
        """Return True if secret matches digest. Never raises.

        A missing, truncated or otherwise malformed digest is a mismatch, not
        an error.
        """
        if not digest:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), digest.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def burn(self, secret: str) -> None:
        """Spend one verification's worth of time and discard the result."""
        self.verify(secret, self._dummy_hash)

    def accepts(self, secret: str) -> bool:
        """Return True if secret can be hashed without truncation."""
        return 0 < len(secret.encode("utf-8")) <= MAX_SECRET_BYTES
