"""FastAPI application entry point."""

import time
import logging
import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from hichers.config import get_settings
from hichers.database import dispose_db, init_db
from hichers.exceptions import (
    AuthRequiredError,
    DuplicateSchemeError,
    NetworkError,
    RemoteApiError,
    TimeoutError,
    ValidationError,
)
from hichers.session import SessionStore

# Ensure structlog has a sink in container/runtime logs.
logging.basicConfig(level=logging.INFO, format="%(message)s")

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()
settings = get_settings()

TRY_AGAIN = "Please try again later."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Hichers console", version="1.0.0", api_base_url=settings.api_base_url)

    settings.storage_dir.mkdir(parents=True, exist_ok=True)

    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    await dispose_db()
    logger.info("Shutting down Hichers console")


# Create FastAPI app
app = FastAPI(
    title="Hichers",
    description="Loyalty schemes, offers and analytics for Hichers businesses",
    version="1.0.0",
    lifespan=lifespan,
)


PUBLIC_API_PATHS = {"/api/newsletter", "/api/contact"}


def _is_public_path(path: str) -> bool:
    if not path.startswith("/api/"):
        return True
    if path in PUBLIC_API_PATHS:
        return True
    return path.startswith("/api/auth/")


class AuthenticationRequiredMiddleware(BaseHTTPMiddleware):
    """Gate dashboard API routes behind a Hichers session."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        path = request.url.path
        if _is_public_path(path):
            return await call_next(request)

        session = request.scope.get("session")
        store = SessionStore(session if isinstance(session, dict) else {})
        current = store.load()
        if current.is_authenticated:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.info(
                "api_request",
                user_id=current.user_id,
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=elapsed_ms,
            )
            return response

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "api_request_blocked",
            method=request.method,
            path=path,
            status_code=401,
            duration_ms=elapsed_ms,
        )
        return JSONResponse({"detail": "Authentication required"}, status_code=401)


# Add auth middleware first, then session middleware so session data
# is available when auth checks run.
app.add_middleware(AuthenticationRequiredMiddleware)

# Signed cookie session holding the Hichers token and user id.
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.cookie_secret,
    session_cookie=settings.session_cookie,
    same_site="lax",
    https_only=not settings.debug,
)


# Error mapping
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse({"detail": exc.message, "field": exc.field}, status_code=400)


@app.exception_handler(AuthRequiredError)
async def auth_required_handler(request: Request, exc: AuthRequiredError):
    return JSONResponse({"detail": exc.message}, status_code=401)


@app.exception_handler(RemoteApiError)
async def remote_api_error_handler(request: Request, exc: RemoteApiError):
    if isinstance(exc, DuplicateSchemeError):
        return JSONResponse({"detail": exc.message}, status_code=409)
    if exc.status == 401:
        return JSONResponse({"detail": exc.message}, status_code=401)
    logger.warning("Remote API error", path=request.url.path, status=exc.status, message=exc.message)
    return JSONResponse({"detail": exc.message or TRY_AGAIN}, status_code=502)


@app.exception_handler(TimeoutError)
async def timeout_handler(request: Request, exc: TimeoutError):
    return JSONResponse({"detail": f"{exc.message} {TRY_AGAIN}".strip()}, status_code=504)


@app.exception_handler(NetworkError)
async def network_error_handler(request: Request, exc: NetworkError):
    return JSONResponse({"detail": f"{exc.message}. {TRY_AGAIN}"}, status_code=503)


# Import and include routers
from hichers.api import auth, dashboard, offers, schemes, site

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(offers.router, prefix="/api/offers", tags=["offers"])
app.include_router(schemes.router, prefix="/api/schemes", tags=["schemes"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(site.router, prefix="/api", tags=["site"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}
