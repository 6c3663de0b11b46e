"""
auth/sessions.py -- The session state machine: register, login, refresh, logout,
change password.

Each principal is in one of two states, held in the store's session record:

  NoSession               refresh fingerprint is None
  Active(fingerprint)     fingerprint of the one refresh token currently valid

Transitions:
  login            any state          -> Active(new)
  refresh          Active(presented)  -> Active(new)     (rotation)
  logout           any state          -> NoSession       (idempotent)
  change_password  any state          -> NoSession

Refresh tokens are single-use. A refresh verifies the token, checks its
fingerprint against the session record, mints a new pair, and then moves the
record with a compare-and-set keyed on the presented fingerprint. If another
refresh (or a logout) changed the record in between, the swap fails and the
caller gets RefreshTokenRevoked. Logout always wins a race with refresh: it
either lands first (the swap then fails) or lands second (clearing the
rotated record).

All local work (hashing, signing, fingerprinting) is finished before the
single store write of each transition, so an abandoned call leaves either the
old state or the new one, never a mix.

Layer rule: no imports from api/ or core/. Configuration arrives through the
constructor.
"""

from __future__ import annotations

import logging

from auth.errors import (
    InvalidCredential,
    InvalidRefreshToken,
    NotFound,
    PasswordRejected,
    RefreshTokenRevoked,
    TokenError,
    UnknownPrincipal,
)
from auth.models import CredentialPair, Principal, TokenPurpose
from auth.passwords import PasswordHasher
from auth.store import SessionStore
from auth.tokens import TokenCodec, fingerprints_match, subject_of

logger = logging.getLogger("sessionwarden.auth")


def normalize_identifier(value: str) -> str:
    """Usernames and emails are stored trimmed and lower-cased."""
    return value.strip().lower()


class SessionManager:
    """Orchestrates the credential lifecycle over a SessionStore.

    Args:
        store:         User-record store (SQL, in-memory, or any SessionStore).
        hasher:        Password hasher.
        access_codec:  TokenCodec for TokenPurpose.ACCESS.
        refresh_codec: TokenCodec for TokenPurpose.REFRESH. Its secret also
                       keys the session-record fingerprints.
    """

    def __init__(
        self,
        store: SessionStore,
        hasher: PasswordHasher,
        access_codec: TokenCodec,
        refresh_codec: TokenCodec,
    ) -> None:
        if access_codec.purpose is not TokenPurpose.ACCESS:
            raise ValueError("access_codec must be an access-purpose TokenCodec")
        if refresh_codec.purpose is not TokenPurpose.REFRESH:
            raise ValueError("refresh_codec must be a refresh-purpose TokenCodec")
        self.store = store
        self.hasher = hasher
        self.access_codec = access_codec
        self.refresh_codec = refresh_codec

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        username: str,
        email: str,
        fullname: str,
        password: str,
        *,
        avatar: str | None = None,
        cover_image: str | None = None,
    ) -> Principal:
        """Create a principal in the NoSession state and return it.

        Raises:
            ValueError:         username, email or fullname is blank.
            PasswordRejected:   password is empty or over 72 bytes.
            DuplicatePrincipal: username or email already taken.
        """
        username = normalize_identifier(username)
        email = normalize_identifier(email)
        fullname = fullname.strip()
        if not (username and email and fullname):
            raise ValueError("username, email and fullname are required")
        if not self.hasher.accepts(password):
            raise PasswordRejected()

        principal = Principal(
            username=username,
            email=email,
            fullname=fullname,
            hashed_password=self.hasher.hash(password),
            avatar=avatar,
            cover_image=cover_image,
        )
        user_id = self.store.create_user(principal)
        logger.info("Registered principal %s", user_id)
        return self.store.find_by_id(user_id)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, identifier: str, secret: str) -> CredentialPair:
        """Verify username-or-email + password and start a fresh session.

        Any previous session for the principal is replaced.

        Raises:
            NotFound:          no principal has that username or email.
            InvalidCredential: the password is wrong.
        """
        principal = self.store.find_by_username_or_email(normalize_identifier(identifier))
        if principal is None:
            # Same bcrypt cost as a real check so timing does not leak existence.
            self.hasher.burn(secret)
            logger.info("Login failed: unknown identifier")
            raise NotFound()
        if not self.hasher.verify(secret, principal.hashed_password):
            logger.info("Login failed: bad password for principal %s", principal.id)
            raise InvalidCredential()

        pair, fingerprint = self._mint(principal)
        self.store.set_session_fingerprint(principal.id, fingerprint)
        logger.info("Login succeeded for principal %s", principal.id)
        return pair

    # ------------------------------------------------------------------
    # Refresh with rotation
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> CredentialPair:
        """Exchange the current refresh token for a brand-new pair.

        Raises:
            InvalidRefreshToken: expired, forged or malformed (.reason says which).
            UnknownPrincipal:    the token's principal no longer exists.
            RefreshTokenRevoked: not the current token (rotated out, logged out,
                                 password changed, or lost a concurrent refresh).
        """
        try:
            claims = self.refresh_codec.verify(refresh_token)
        except TokenError as exc:
            logger.info("Refresh rejected: %s", type(exc).__name__)
            raise InvalidRefreshToken(reason=exc) from exc

        user_id = subject_of(claims)
        principal = self.store.find_by_id(user_id)
        if principal is None:
            logger.warning("Refresh rejected: principal %s no longer exists", user_id)
            raise UnknownPrincipal()

        presented = self.refresh_codec.fingerprint(refresh_token)
        current = self.store.get_session_fingerprint(user_id)
        if current is None:
            logger.warning("Refresh rejected: principal %s has no active session", user_id)
            raise RefreshTokenRevoked(no_session=True)
        if not fingerprints_match(current, presented):
            logger.warning("Refresh rejected: revoked or reused refresh token for principal %s", user_id)
            raise RefreshTokenRevoked()

        pair, fingerprint = self._mint(principal)
        if not self.store.swap_session_fingerprint(user_id, presented, fingerprint):
            logger.warning("Refresh rejected: concurrent session change for principal %s", user_id)
            raise RefreshTokenRevoked()
        logger.info("Rotated refresh token for principal %s", user_id)
        return pair

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def logout(self, user_id: int) -> None:
        """End the principal's session. Safe to call when already logged out."""
        self.store.set_session_fingerprint(user_id, None)
        logger.info("Logged out principal %s", user_id)

    def change_password(self, user_id: int, old_secret: str, new_secret: str) -> None:
        """Replace the password and revoke every outstanding refresh token.

        Raises:
            UnknownPrincipal:  user_id does not exist.
            InvalidCredential: old_secret is wrong.
            PasswordRejected:  new_secret is empty or over 72 bytes.
        """
        principal = self.store.find_by_id(user_id)
        if principal is None:
            raise UnknownPrincipal()
        if not self.hasher.verify(old_secret, principal.hashed_password):
            logger.info("Password change refused: bad current password for principal %s", user_id)
            raise InvalidCredential()
        if not self.hasher.accepts(new_secret):
            raise PasswordRejected()

        digest = self.hasher.hash(new_secret)
        if not self.store.replace_password(user_id, digest):
            raise UnknownPrincipal()
        logger.info("Password changed for principal %s; session revoked", user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mint(self, principal: Principal) -> tuple[CredentialPair, str]:
        """Issue a new pair and return it with the refresh token's fingerprint."""
        snapshot = {
            "username": principal.username,
            "email": principal.email,
            "fullname": principal.fullname,
        }
        access = self.access_codec.issue(snapshot, subject=principal.id)
        refresh = self.refresh_codec.issue({}, subject=principal.id)
        pair = CredentialPair(
            access_token=access,
            refresh_token=refresh,
            access_expires_in=self.access_codec.ttl_seconds,
            refresh_expires_in=self.refresh_codec.ttl_seconds,
        )
        return pair, self.refresh_codec.fingerprint(refresh)
