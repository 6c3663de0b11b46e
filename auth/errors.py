"""
auth/errors.py -- Exception taxonomy for the credential and session lifecycle.

Every failure the core can produce is an AuthError subclass. Each class
carries three class attributes:

  code:        stable machine-readable code returned to HTTP clients.
  status_code: HTTP status the api/ layer maps it to.
  message:     stable, coarse-grained public message.

Internal distinctions are kept even where the public code is shared. For
example NotFound and InvalidCredential both surface as "bad_credentials"
(so a client cannot enumerate usernames), and RefreshTokenRevoked and
InvalidRefreshToken both surface as "invalid_refresh_token", but tests and
logs see the concrete class. Wrapping errors keep the specific cause in
.reason (and in __cause__ via `raise ... from exc`).

None of these are retried by the core. They are the terminal outcome of the
call that raised them.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all credential and session lifecycle failures."""

    code: str = "unauthorized"
    status_code: int = 401
    message: str = "Authentication required."

    def __init__(self, detail: str | None = None, *, reason: BaseException | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message
        self.reason = reason


# ---------------------------------------------------------------------------
# Credential checks (login / change-password)
# ---------------------------------------------------------------------------


class InvalidCredential(AuthError):
    """The supplied password does not match the stored hash."""

    code = "bad_credentials"
    message = "Invalid username or password."


class NotFound(AuthError):
    """No principal matches the login identifier."""

    code = "bad_credentials"
    message = "Invalid username or password."


class UnknownPrincipal(AuthError):
    """A token or call names a principal id that no longer exists."""

    message = "Authentication required."


class PasswordRejected(AuthError):
    """A new password cannot be hashed (empty, or over bcrypt's 72-byte limit)."""

    code = "invalid_password"
    status_code = 400
    message = "Password must be between 1 and 72 bytes."


class DuplicatePrincipal(AuthError):
    """Username or email is already taken."""

    code = "conflict"
    status_code = 409
    message = "A user with that username or email already exists."


# ---------------------------------------------------------------------------
# Token codec failures
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    """Base for the three ways a presented token can fail verification."""


class ExpiredToken(TokenError):
    """Signature is valid but the current time is past exp."""


class InvalidSignature(TokenError):
    """Signature does not match, the algorithm is not allowed, or the token
    was signed for another purpose."""


class MalformedToken(TokenError):
    """The token cannot be parsed, or a required claim is missing or mistyped."""


# ---------------------------------------------------------------------------
# Session manager / authenticator boundaries
# ---------------------------------------------------------------------------


class InvalidRefreshToken(AuthError):
    """Refresh token failed codec verification. .reason holds the TokenError."""

    code = "invalid_refresh_token"
    message = "Refresh token is no longer valid. Please sign in again."


class RefreshTokenRevoked(AuthError):
    """Refresh token verified but is not the principal's current one.

    Raised on rotation replay (an already rotated-out token), after logout or
    password change (no_session=True), and when a concurrent refresh won the
    compare-and-set.
    """

    code = "invalid_refresh_token"
    message = "Refresh token is no longer valid. Please sign in again."

    def __init__(self, detail: str | None = None, *, no_session: bool = False) -> None:
        super().__init__(detail)
        self.no_session = no_session


class Unauthenticated(AuthError):
    """Access token missing, invalid, or naming a principal that is gone."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreUnavailable(AuthError):
    """The user-record store could not be reached. Propagated, never retried."""

    code = "store_unavailable"
    status_code = 503
    message = "The account service is temporarily unavailable."


__all__ = [
    "AuthError",
    "InvalidCredential",
    "NotFound",
    "UnknownPrincipal",
    "PasswordRejected",
    "DuplicatePrincipal",
    "TokenError",
    "ExpiredToken",
    "InvalidSignature",
    "MalformedToken",
    "InvalidRefreshToken",
    "RefreshTokenRevoked",
    "Unauthenticated",
    "StoreUnavailable",
]
