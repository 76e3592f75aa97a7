"""FastAPI application for the TechPulse API."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from techpulse import __version__
from techpulse.core.config import load_config, resolve_db_path
from techpulse.core.database import init_database, seed_settings
from techpulse.core.models import AppConfig
from techpulse.db.repository import Repository
from techpulse.ratelimit.limiter import RateLimiter, retry_after
from techpulse.security.policy import POLICY_VERSION, SERVER_POLICY
from techpulse.web.deps import RateLimitExceeded
from techpulse.web.security import (
    SecurityHeadersMiddleware,
    TokenSigner,
    resolve_admin_hash,
    resolve_secret_key,
)

logger = logging.getLogger(__name__)

_API_PREFIX = "/api/v1"


def create_app(
    config: Optional[AppConfig] = None,
    repo: Optional[Repository] = None,
    limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    config = config or load_config()
    if repo is None:
        db_path = resolve_db_path(config.db_path)
        init_database(db_path)
        seed_settings(db_path)
        repo = Repository(db_path)
        logger.info("Database initialized at %s", db_path)

    app = FastAPI(title=config.site_name, version=__version__, docs_url=None, redoc_url=None)

    # Process-wide collaborators, built once and read by handlers via web.deps
    app.state.config = config
    app.state.repo = repo
    app.state.limiter = limiter or RateLimiter(repo, config.rate_limits)
    app.state.policy = SERVER_POLICY
    app.state.tokens = TokenSigner(resolve_secret_key(config.auth), config.auth.token_max_age)
    app.state.admin_hash = resolve_admin_hash(config.auth)

    # Security middleware (order matters: outermost runs first)
    app.add_middleware(SecurityHeadersMiddleware)
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["Authorization", "Content-Type"],
            expose_headers=[
                "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After",
            ],
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = sorted({
            ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body"
            for err in exc.errors()
        })
        return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        wait = retry_after(exc.result)
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests. Please try again later.", "retryAfter": wait},
            headers={**exc.headers, "Retry-After": str(wait)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled server error")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__, "policy_version": POLICY_VERSION}

    # Import routes here to avoid circular imports at module level
    from techpulse.web.routes import admin, auth, feeds, publisher, settings, snippets

    app.include_router(snippets.router, prefix=_API_PREFIX)
    app.include_router(auth.router, prefix=_API_PREFIX)
    app.include_router(feeds.router, prefix=_API_PREFIX)
    app.include_router(publisher.router, prefix=_API_PREFIX)
    app.include_router(settings.router, prefix=_API_PREFIX)
    app.include_router(admin.router, prefix=f"{_API_PREFIX}/admin")

    return app
