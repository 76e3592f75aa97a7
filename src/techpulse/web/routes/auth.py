"""Admin sign-in: exchanges the admin password for a bearer token."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from techpulse.core.models import TokenRequest, UserRole
from techpulse.web.deps import enforce_rate_limit
from techpulse.web.security import get_client_ip, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/token")
def issue_admin_token(body: TokenRequest, request: Request, response: Response):
    headers = enforce_rate_limit(request, "auth-token")
    ip = get_client_ip(request)

    admin_hash = request.app.state.admin_hash
    if not admin_hash:
        return JSONResponse(
            status_code=403,
            content={"error": "Authentication is not configured"},
            headers=headers,
        )

    if not verify_password(body.password, admin_hash):
        logger.warning("Failed admin sign-in from %s", ip)
        return JSONResponse(status_code=401, content={"error": "Invalid password"}, headers=headers)

    tokens = request.app.state.tokens
    logger.info("Admin token issued to %s", ip)
    response.headers.update(headers)
    return {
        "access_token": tokens.issue("admin", UserRole.ADMIN),
        "token_type": "bearer",
        "role": UserRole.ADMIN.value,
        "expires_in": tokens.max_age,
    }
