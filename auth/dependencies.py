"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Credentials may arrive two ways, checked in priority order:
  1. "access_token" cookie -- set by the browser login flow.
  2. Authorization: Bearer <token> header -- mobile and API clients.

Both converge on RequestAuthenticator.authenticate(); the core has no opinion
on transport. The same applies to refresh tokens ("refresh_token" cookie or a
JSON body field), handled by extract_refresh_token().

try_get_current_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.

The authenticator is read from request.app.state.authenticator, wired by the
lifespan in api/main.py.

Layer rule: may import fastapi (this module is part of its DI system), never
api/ or core/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.authenticator import RequestAuthenticator
from auth.errors import Unauthenticated
from auth.models import Principal

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def _bearer(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def extract_access_token(request: Request) -> str | None:
    """Return the access token from the cookie or the Bearer header, if any."""
    return request.cookies.get(ACCESS_COOKIE) or _bearer(request)


def extract_refresh_token(request: Request, body_token: str | None = None) -> str | None:
    """Return the refresh token from the request body or the refresh cookie."""
    return body_token or request.cookies.get(REFRESH_COOKIE)


def try_get_current_principal(request: Request) -> Principal | None:
    """Authenticate the request. Returns None on any authentication failure.

    StoreUnavailable is not an authentication failure and propagates.
    On success the principal is also attached to request.state.principal.
    """
    authenticator: RequestAuthenticator = request.app.state.authenticator
    try:
        principal = authenticator.authenticate(extract_access_token(request))
    except Unauthenticated:
        return None
    request.state.principal = principal
    return principal


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal
