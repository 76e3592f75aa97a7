"""Authentication, client IP derivation, and security headers middleware."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

import bcrypt
from fastapi import HTTPException, Request
from fastapi.responses import Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from techpulse.core.models import AuthConfig, UserRole

logger = logging.getLogger(__name__)

_TOKEN_SALT = "techpulse-api-token"


# ---- Client IP ----

def get_client_ip(request: Request) -> str:
    """Client address used for rate-limit bucketing.

    Precedence: first X-Forwarded-For entry, X-Real-IP, CF-Connecting-IP,
    then the literal "unknown". The socket peer is deliberately ignored so
    every instance behind the same proxies buckets identically.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header, "").strip()
        if value:
            return value
    return "unknown"


# ---- Password helpers ----

def hash_password(password: str) -> str:
    """Hash a password with bcrypt. Use this to generate TECHPULSE_ADMIN_HASH."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


def resolve_admin_hash(auth: AuthConfig) -> str:
    """The configured admin hash, or the plaintext fallback hashed once."""
    if auth.admin_hash:
        return auth.admin_hash
    # Some hosts mangle the $ characters in bcrypt hashes
    if auth.admin_password:
        logger.info("TECHPULSE_ADMIN_PASSWORD set, hashed at runtime")
        return hash_password(auth.admin_password)
    return ""


def resolve_secret_key(auth: AuthConfig) -> str:
    if auth.secret_key:
        return auth.secret_key
    logger.warning("TECHPULSE_SECRET_KEY not set, using a random key (tokens won't survive restarts)")
    return secrets.token_hex(32)


# ---- Tokens ----

@dataclass(frozen=True)
class Principal:
    subject: str
    role: UserRole


class TokenSigner:
    """Stateless signed bearer tokens carrying a subject and a role."""

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)
        self.max_age = max_age

    def issue(self, subject: str, role: UserRole) -> str:
        return self._serializer.dumps({"sub": subject, "role": role.value})

    def verify(self, token: str) -> Optional[Principal]:
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            logger.info("Rejected expired API token")
            return None
        except BadSignature:
            return None
        try:
            return Principal(subject=str(data["sub"]), role=UserRole(data["role"]))
        except (KeyError, TypeError, ValueError):
            return None


def _bearer_token(request: Request) -> str:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return ""
    return token.strip()


def require_roles(*roles: UserRole):
    """Dependency factory: the caller must hold a valid token with one of ``roles``."""
    allowed = frozenset(roles)

    def dependency(request: Request) -> Principal:
        token = _bearer_token(request)
        if not token:
            raise HTTPException(
                status_code=401, detail="Authorization header required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        principal = request.app.state.tokens.verify(token)
        if principal is None:
            raise HTTPException(
                status_code=401, detail="Invalid authentication",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if principal.role not in allowed:
            logger.warning("Role %s refused for %s", principal.role.value, request.url.path)
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return principal

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_publisher = require_roles(UserRole.PUBLISHER, UserRole.ADMIN)


# ---- Middleware ----

_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = _CSP
        response.headers["Cache-Control"] = "no-store"
        # HSTS only over HTTPS
        if request.headers.get("X-Forwarded-Proto") == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
