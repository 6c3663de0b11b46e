"""
auth/tokens.py -- JWT issue/verify and refresh-token fingerprints.

Security design decisions:
  JWT: python-jose with HS256. One TokenCodec per purpose (access, refresh),
       each with its own secret. A refresh token therefore fails signature
       verification under the access codec, and vice versa; the "typ" claim is
       checked as a second line so a misconfigured shared secret still cannot
       cross purposes.

  Claims: every token carries sub (principal id as a string -- jose rejects
       non-string subjects), typ, iat, exp and a random jti. The jti makes two
       tokens minted for the same principal in the same second distinct, which
       the refresh fingerprint relies on.

  Verification outcome: verify() returns the claims dict or raises exactly one
       of MalformedToken, InvalidSignature, ExpiredToken. Signature is checked
       before expiry, so a forged expired token reports InvalidSignature.
       Leeway is zero unless the codec is built with one.

  Fingerprints: HMAC-SHA256(refresh secret, raw token) as hex. The session
       record stores this, never the raw token, so a leaked users table does
       not hand out working refresh tokens. Deterministic, so comparison is a
       constant-time string compare.

Layer rule: stdlib + python-jose only. No imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.errors import ExpiredToken, InvalidSignature, MalformedToken
from auth.models import TokenPurpose

logger = logging.getLogger("sessionwarden.auth")

_ALGORITHM = "HS256"

# Claims the codec owns. Callers' claims cannot override them.
_RESERVED_CLAIMS = frozenset({"sub", "typ", "iat", "exp", "jti"})


def token_fingerprint(token: str, secret_key: str) -> str:
    """Return HMAC-SHA256(secret_key, token) as a hex string."""
    return hmac.new(secret_key.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


def fingerprints_match(a: str | None, b: str | None) -> bool:
    """Constant-time equality for fingerprints. None never matches."""
    if a is None or b is None:
        return False
    return hmac.compare_digest(a, b)


def subject_of(claims: dict[str, Any]) -> int:
    """Return the integer principal id carried in the sub claim."""
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub.isdigit():
        raise MalformedToken("token subject is not a principal id")
    return int(sub)


class TokenCodec:
    """Signs and verifies compact, expiring, tamper-evident tokens of one purpose.

    Usage:
        access = TokenCodec(TokenPurpose.ACCESS, settings.access_token_secret,
                            settings.access_token_expiry)
        token = access.issue({"username": "alice"}, subject=42)
        claims = access.verify(token)
    """

    def __init__(
        self,
        purpose: TokenPurpose,
        secret_key: str,
        ttl: timedelta,
        *,
        leeway_seconds: int = 0,
    ) -> None:
        if not secret_key:
            raise ValueError(f"{purpose.value} token secret must not be empty")
        self.purpose = purpose
        self.ttl = ttl
        self.leeway_seconds = leeway_seconds
        self._secret_key = secret_key

    @property
    def ttl_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    def issue(self, claims: dict[str, Any], *, subject: int, ttl: timedelta | None = None) -> str:
        """Encode a signed token for subject carrying claims.

        Args:
            claims:  Extra payload (e.g. a profile snapshot). Reserved claim
                     names are ignored.
            subject: Principal id.
            ttl:     Lifetime override; defaults to the codec's TTL.
        """
        now = datetime.now(timezone.utc)
        payload = {k: v for k, v in claims.items() if k not in _RESERVED_CLAIMS}
        payload.update(
            {
                "sub": str(subject),
                "typ": self.purpose.value,
                "iat": now,
                "exp": now + (ttl if ttl is not None else self.ttl),
                "jti": uuid.uuid4().hex,
            }
        )
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> dict[str, Any]:
        """Check structure, signature, purpose and expiry; return the claims.

        Raises:
            MalformedToken:   unparseable, or required claims missing/mistyped.
            InvalidSignature: bad signature, disallowed alg, or wrong purpose.
            ExpiredToken:     valid signature, past exp.
        """
        if not isinstance(token, str) or not token:
            raise MalformedToken("empty token")

        # Structure first: separates "cannot be parsed" from "bad signature",
        # which jwt.decode() reports with the same JWTError type.
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken(str(exc)) from exc

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"leeway": self.leeway_seconds},
            )
        except ExpiredSignatureError as exc:
            raise ExpiredToken(str(exc)) from exc
        except JWTClaimsError as exc:
            raise MalformedToken(str(exc)) from exc
        except JWTError as exc:
            raise InvalidSignature(str(exc)) from exc

        if claims.get("typ") != self.purpose.value:
            raise InvalidSignature(f"token was not issued as a {self.purpose.value} token")
        if not isinstance(claims.get("exp"), int) or not isinstance(claims.get("jti"), str):
            raise MalformedToken("token is missing exp or jti")
        subject_of(claims)
        return claims

    def fingerprint(self, token: str) -> str:
        """Server-side reference for token, keyed with this codec's secret."""
        return token_fingerprint(token, self._secret_key)
