"""
api/main.py -- FastAPI application factory for SessionWarden.

Exposes the credential lifecycle core over HTTP. The core (auth/) never reads
configuration; this module is the bootstrap that turns Settings into
constructed components and hangs them on app.state:

  app.state.settings       Settings
  app.state.store          SessionStore (UserStore unless one is injected)
  app.state.sessions       SessionManager
  app.state.authenticator  RequestAuthenticator

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- only when CORS_ORIGINS is set; credentials allowed
                         so browsers send the auth cookies
  2. log_requests     -- one log line per request with latency

Lifespan handles startup (store, hasher, codecs) and shutdown (store close)
symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.authenticator import RequestAuthenticator
from auth.errors import AuthError
from auth.models import TokenPurpose
from auth.passwords import PasswordHasher
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore
from auth.tokens import TokenCodec
from core.config import Settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessionwarden.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(settings: Settings, store: SessionStore) -> tuple[SessionManager, RequestAuthenticator]:
    """Construct the core from settings. The only place secrets meet the core."""
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    access_codec = TokenCodec(
        TokenPurpose.ACCESS,
        settings.access_token_secret,
        settings.access_token_expiry,
        leeway_seconds=settings.token_leeway_seconds,
    )
    refresh_codec = TokenCodec(
        TokenPurpose.REFRESH,
        settings.refresh_token_secret,
        settings.refresh_token_expiry,
        leeway_seconds=settings.token_leeway_seconds,
    )
    sessions = SessionManager(store, hasher, access_codec, refresh_codec)
    authenticator = RequestAuthenticator(store, access_codec)
    return sessions, authenticator


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings, store: SessionStore | None = None) -> FastAPI:
    """Build the ASGI app.

    Args:
        settings: Loaded Settings (the caller decides where they come from).
        store:    Optional pre-built SessionStore. When None, the lifespan opens
                  a UserStore on settings.database_url and closes it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("SessionWarden API starting up")
        owned = store is None
        app.state.settings = settings
        app.state.store = UserStore(settings.database_url) if owned else store
        app.state.sessions, app.state.authenticator = build_components(settings, app.state.store)
        logger.info(
            "Auth initialized (access ttl=%ss, refresh ttl=%ss, store=%s)",
            int(settings.access_token_expiry.total_seconds()),
            int(settings.refresh_token_expiry.total_seconds()),
            type(app.state.store).__name__,
        )

        yield

        if owned:
            app.state.store.close()
        logger.info("SessionWarden API shutdown complete")

    app = FastAPI(
        title="SessionWarden API",
        description="Credential verification and session-token lifecycle.",
        version=__version__,
        lifespan=lifespan,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "Authorization"],
            max_age=3600,
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])

    # -----------------------------------------------------------------------
    # Exception handlers -- every error uses the same ErrorResponse envelope.
    # -----------------------------------------------------------------------

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """Map the core's error taxonomy to its stable public code and message.

        The concrete class (and the wrapped reason, if any) goes to the log so
        revoked vs expired refresh tokens stay distinguishable there while the
        client sees one message.
        """
        reason = type(exc.reason).__name__ if exc.reason is not None else "-"
        logger.info(
            "%s %s -> %s (%s, reason=%s)",
            request.method,
            request.url.path,
            exc.code,
            type(exc).__name__,
            reason,
        )
        return _error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 with structured error when a request body fails validation."""
        return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        """Core input checks (e.g. blank username after trimming) surface as 422."""
        return _error_response(422, "validation_error", "Request validation failed.", str(exc))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Structured dict details are passed through as the error field."""
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all. The traceback goes to the log, never to the client."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "internal_error", "An unexpected error occurred.")

    # -----------------------------------------------------------------------
    # Health -- no auth, registered on the app so it survives router changes.
    # -----------------------------------------------------------------------

    @app.get("/api/v1/health", tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Return liveness, version, and whether the store answers."""
        try:
            request.app.state.store.get_session_fingerprint(0)
            database = "ok"
        except AuthError:
            database = "error"
        return HealthResponse(version=__version__, components={"app": "ok", "database": database})

    return app
