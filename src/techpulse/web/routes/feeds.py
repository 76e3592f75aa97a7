"""RSS feed refresh trigger (admin only)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from techpulse.core.models import FeedRefreshRequest
from techpulse.research.rss import refresh_feeds
from techpulse.web.deps import enforce_rate_limit, get_repo
from techpulse.web.security import Principal, require_admin

router = APIRouter()


@router.post("/feeds/refresh")
def refresh(
    request: Request,
    response: Response,
    body: Optional[FeedRefreshRequest] = None,
    principal: Principal = Depends(require_admin),
):
    headers = enforce_rate_limit(request, "fetch-rss")
    repo = get_repo(request)

    feed_id = body.feed_id if body else None
    if feed_id is not None and repo.get_feed(feed_id) is None:
        return JSONResponse(status_code=404, content={"error": "Feed not found"}, headers=headers)

    results = refresh_feeds(repo, feed_id)
    response.headers.update(headers)
    return {
        "success": True,
        "results": results,
        "total": sum(n for n in results.values() if n > 0),
        "failed": [name for name, n in results.items() if n < 0],
    }
