"""Public snippet serving for page renders."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from techpulse.core.models import SnippetRequest, SnippetResponse
from techpulse.security.snippets import SnippetService
from techpulse.web.deps import enforce_rate_limit, get_policy, get_repo

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/snippets", response_model=SnippetResponse)
def get_html_snippets(body: SnippetRequest, request: Request, response: Response):
    """Sanitized snippets for one page location.

    Raw snippet code never leaves this handler: only the sanitized markup and
    the admitted scripts are returned.
    """
    headers = enforce_rate_limit(request, "get-html-snippets")

    service = SnippetService(get_repo(request), get_policy(request))
    try:
        rendered = service.render(body.location)
    except sqlite3.Error:
        logger.exception("Failed to load snippets for %s", body.location)
        return JSONResponse(status_code=500, content={"error": "Failed to load snippets"}, headers=headers)

    response.headers.update(headers)
    return rendered.to_response()
