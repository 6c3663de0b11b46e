"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
manager do the work; these only own the shape.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenPurpose(str, Enum):
    """Which codec a token belongs to. Stored in the token as the "typ" claim."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class Principal:
    """A user identity as read from the store for one operation.

    username and email are stored lower-cased and trimmed; the store matches
    them exactly, so callers normalize before lookup.

    fullname / avatar / cover_image are profile fields the core never
    interprets. avatar and cover_image hold URLs from an external object store.

    The session record (refresh-token fingerprint) is deliberately not a field
    here -- it is read and written only through the store's fingerprint
    methods so no caller can persist a stale copy of it.
    """

    username: str
    email: str
    fullname: str
    id: int | None = None
    hashed_password: str | None = None
    avatar: str | None = None
    cover_image: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class CredentialPair:
    """Access and refresh tokens, always minted and returned together.

    The *_expires_in fields are seconds, for transports that set cookie
    max_age or report expires_in to clients.
    """

    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int
