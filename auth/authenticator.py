"""
auth/authenticator.py -- Verifies an access token and resolves the principal.

Access tokens are stateless between issue and expiry: there is no
session-record check here, so a logged-out user's access token keeps working
until its short TTL runs out. The principal is always re-read from the store,
so a deleted account stops authenticating immediately and callers get current
profile data rather than the snapshot in the claims.

Layer rule: no imports from api/ or core/. Transport-specific extraction
(cookie vs header) lives in auth/dependencies.py.
"""

from __future__ import annotations

import logging

from auth.errors import TokenError, Unauthenticated
from auth.models import Principal, TokenPurpose
from auth.store import SessionStore
from auth.tokens import TokenCodec, subject_of

logger = logging.getLogger("sessionwarden.auth")


class RequestAuthenticator:
    """Turns a presented access token into the current Principal."""

    def __init__(self, store: SessionStore, access_codec: TokenCodec) -> None:
        if access_codec.purpose is not TokenPurpose.ACCESS:
            raise ValueError("access_codec must be an access-purpose TokenCodec")
        self.store = store
        self.access_codec = access_codec

    def authenticate(self, access_token: str | None) -> Principal:
        """Return the principal named by access_token.

        Raises Unauthenticated on a missing token, on any codec failure
        (.reason holds the ExpiredToken / InvalidSignature / MalformedToken),
        or when the principal no longer exists. StoreUnavailable propagates.
        """
        if not access_token:
            raise Unauthenticated("no access token presented")
        try:
            claims = self.access_codec.verify(access_token)
        except TokenError as exc:
            logger.debug("Access token rejected: %s", type(exc).__name__)
            raise Unauthenticated(reason=exc) from exc

        user_id = subject_of(claims)
        principal = self.store.find_by_id(user_id)
        if principal is None:
            logger.info("Access token names missing principal %s", user_id)
            raise Unauthenticated("principal no longer exists")
        return principal
