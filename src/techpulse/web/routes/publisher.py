"""Publisher tools: article import, AI assistance and content preview."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from techpulse.content.generator import generate_content
from techpulse.content.prompts import MissingPromptInput
from techpulse.core.models import AIContentRequest, ArticleImportRequest, ContentPreviewRequest
from techpulse.research.scraper import InvalidImportURL, scrape_article_content
from techpulse.security.executor import render_preview
from techpulse.web.deps import enforce_rate_limit, get_config
from techpulse.web.security import Principal, require_publisher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/articles/import")
def import_article(
    body: ArticleImportRequest,
    request: Request,
    response: Response,
    principal: Principal = Depends(require_publisher),
):
    headers = enforce_rate_limit(request, "scrape-article")
    try:
        article = scrape_article_content(body.url)
    except InvalidImportURL as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)}, headers=headers)

    if article is None:
        return JSONResponse(status_code=404, content={"error": "No content found at URL"}, headers=headers)

    logger.info("Imported article %s for %s", article.url, principal.subject)
    response.headers.update(headers)
    return {"success": True, "data": article.to_dict()}


@router.post("/ai/content")
def ai_content(
    body: AIContentRequest,
    request: Request,
    response: Response,
    principal: Principal = Depends(require_publisher),
):
    headers = enforce_rate_limit(request, "ai-content")
    try:
        data = generate_content(body, get_config(request))
    except MissingPromptInput as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)}, headers=headers)
    except Exception:
        logger.exception("AI content generation failed (%s)", body.type.value)
        return JSONResponse(
            status_code=502, content={"error": "AI content generation failed"}, headers=headers,
        )

    response.headers.update(headers)
    return {"success": True, "data": data}


@router.post("/content/preview")
def preview_content(
    body: ContentPreviewRequest,
    principal: Principal = Depends(require_publisher),
):
    return render_preview(body.content, body.trusted)
