"""Admin snippet management and rate-limit maintenance."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from techpulse.core.models import (
    SnippetInput,
    SnippetPreviewRequest,
    SnippetUpdate,
    parse_location,
)
from techpulse.security.snippets import lint_snippet, sanitize_snippet_html
from techpulse.web.deps import get_config, get_limiter, get_policy, get_repo
from techpulse.web.security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


def _check_length(request: Request, code: Optional[str]) -> None:
    limit = get_config(request).snippets.max_code_length
    if code is not None and len(code) > limit:
        raise HTTPException(status_code=400, detail=f"Snippet code exceeds {limit} characters")


def _get_or_404(request: Request, snippet_id: int) -> dict:
    snippet = get_repo(request).get_snippet(snippet_id)
    if snippet is None:
        raise HTTPException(status_code=404, detail="Snippet not found")
    return snippet


# ---- Snippets ----

@router.get("/snippets")
def list_snippets(request: Request, location: Optional[str] = None):
    if location:
        try:
            location = parse_location(location).value
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid location") from None
    return {"snippets": get_repo(request).get_snippets(location)}


@router.post("/snippets", status_code=201)
def create_snippet(body: SnippetInput, request: Request):
    _check_length(request, body.code)
    repo = get_repo(request)
    snippet_id = repo.create_snippet(
        body.name, body.location.value, body.code,
        is_active=body.is_active, priority=body.priority,
    )
    logger.info("Snippet %d created at %s", snippet_id, body.location.value)
    return {
        "snippet": repo.get_snippet(snippet_id),
        "warnings": lint_snippet(body.code, get_policy(request)),
    }


@router.post("/snippets/preview")
def preview_snippet(body: SnippetPreviewRequest, request: Request):
    """Show what a page would receive for ``code`` without saving it."""
    policy = get_policy(request)
    return {
        "sanitized": sanitize_snippet_html(body.code, policy).to_response(),
        "warnings": lint_snippet(body.code, policy),
    }


@router.get("/snippets/{snippet_id}")
def get_snippet(snippet_id: int, request: Request):
    return {"snippet": _get_or_404(request, snippet_id)}


@router.put("/snippets/{snippet_id}")
def update_snippet(snippet_id: int, body: SnippetUpdate, request: Request):
    _check_length(request, body.code)
    _get_or_404(request, snippet_id)
    fields = body.model_dump(exclude_none=True)
    if "location" in fields:
        fields["location"] = fields["location"].value
    repo = get_repo(request)
    repo.update_snippet(snippet_id, **fields)
    snippet = repo.get_snippet(snippet_id)
    return {
        "snippet": snippet,
        "warnings": lint_snippet(snippet["code"], get_policy(request)),
    }


@router.delete("/snippets/{snippet_id}")
def delete_snippet(snippet_id: int, request: Request):
    if not get_repo(request).delete_snippet(snippet_id):
        raise HTTPException(status_code=404, detail="Snippet not found")
    logger.info("Snippet %d deleted", snippet_id)
    return {"deleted": snippet_id}


# ---- Rate limits ----

@router.get("/rate-limits")
def list_rate_limits(request: Request, function_name: Optional[str] = None, limit: int = 50):
    limit = max(1, min(limit, 500))
    return {"records": get_repo(request).get_rate_limits(function_name, limit)}


@router.post("/rate-limits/cleanup")
def cleanup_rate_limits(request: Request):
    removed = get_limiter(request).cleanup_expired()
    return {"removed": removed}
