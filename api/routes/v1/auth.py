"""
api/routes/v1/auth.py -- Credential and session REST endpoints.

Routes:
  POST /api/v1/auth/register          -- create an account (no session yet)
  POST /api/v1/auth/login             -- password login; returns pair, sets cookies
  POST /api/v1/auth/refresh           -- rotate refresh token; returns new pair
  POST /api/v1/auth/logout            -- revoke session; clears cookies (requires auth)
  POST /api/v1/auth/change-password   -- replace password, revoke session (requires auth)
  GET  /api/v1/auth/me                -- current principal (requires auth)

Security:
  - Handlers are plain def so FastAPI runs them in its thread pool; bcrypt and
    store calls do not block the event loop.
  - Auth failures are raised as AuthError and rendered by the exception
    handler in api/main.py. NotFound and InvalidCredential share one public
    code so responses do not reveal which usernames exist.
  - Cache-Control: no-store on every response that carries tokens.
  - Cookies are httpOnly, samesite=lax, and secure when SECURE_COOKIES=true.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from auth.authenticator import RequestAuthenticator
from auth.dependencies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    extract_refresh_token,
    get_current_principal,
)
from auth.errors import InvalidRefreshToken
from auth.models import CredentialPair, Principal
from auth.sessions import SessionManager

# Auth policy:
# - POST /auth/register:         public
# - POST /auth/login:            public
# - POST /auth/refresh:          public -- the refresh token is the credential
# - POST /auth/logout:           requires auth (get_current_principal)
# - POST /auth/change-password:  requires auth (get_current_principal)
# - GET  /auth/me:               requires auth (get_current_principal)
router = APIRouter()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookies(request: Request, response: JSONResponse, pair: CredentialPair) -> None:
    """Write both tokens as httpOnly cookies whose max_age matches token expiry.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation for most cases).
    The refresh cookie is scoped to the auth routes so it is not sent on every call.
    """
    secure = request.app.state.settings.secure_cookies
    response.set_cookie(
        ACCESS_COOKIE,
        value=pair.access_token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=pair.access_expires_in,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=pair.refresh_token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=pair.refresh_expires_in,
        path="/api/v1/auth",
    )
    response.headers["Cache-Control"] = "no-store"


def clear_auth_cookies(response: JSONResponse) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE, path="/api/v1/auth")


def _token_response(request: Request, pair: CredentialPair, principal: Principal) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=TokenResponse.from_pair(pair, principal).model_dump())
    set_auth_cookies(request, resp, pair)
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account. The new principal starts with no session; log in next."""
    sessions: SessionManager = request.app.state.sessions
    principal = sessions.register(
        body.username,
        body.email,
        body.fullname,
        body.password,
        avatar=body.avatar,
        cover_image=body.cover_image,
    )
    return UserResponse.from_principal(principal)


@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username-or-email and password; return and set the pair."""
    sessions: SessionManager = request.app.state.sessions
    authenticator: RequestAuthenticator = request.app.state.authenticator
    pair = sessions.login(body.identifier, body.password)
    principal = authenticator.authenticate(pair.access_token)
    return _token_response(request, pair, principal)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, body: RefreshRequest | None = None) -> JSONResponse:
    """Rotate the refresh token (from body or cookie) and return a new pair.

    The presented token stops working as soon as this succeeds.
    """
    sessions: SessionManager = request.app.state.sessions
    authenticator: RequestAuthenticator = request.app.state.authenticator
    token = extract_refresh_token(request, body.refresh_token if body else None)
    if not token:
        raise InvalidRefreshToken("no refresh token presented")
    pair = sessions.refresh(token)
    principal = authenticator.authenticate(pair.access_token)
    return _token_response(request, pair, principal)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, principal: Principal = Depends(get_current_principal)) -> JSONResponse:
    """End the caller's session and clear both cookies."""
    sessions: SessionManager = request.app.state.sessions
    sessions.logout(principal.id)
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_auth_cookies(resp)
    return resp


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
) -> JSONResponse:
    """Replace the caller's password. Every session ends; the caller must log in again."""
    sessions: SessionManager = request.app.state.sessions
    sessions.change_password(principal.id, body.old_password, body.new_password)
    resp = JSONResponse(content=MessageResponse(message="Password changed. Please sign in again.").model_dump())
    clear_auth_cookies(resp)
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(principal: Principal = Depends(get_current_principal)) -> UserResponse:
    """Return the current principal as stored, not the token's claims snapshot."""
    return UserResponse.from_principal(principal)
