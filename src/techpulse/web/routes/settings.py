"""Site-wide settings."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import ValidationError

from techpulse.core.models import SiteSettings
from techpulse.web.deps import get_repo
from techpulse.web.security import require_admin

router = APIRouter()


def _current(request: Request) -> SiteSettings:
    stored = get_repo(request).get_settings()
    known = {k: v for k, v in stored.items() if k in SiteSettings.model_fields}
    return SiteSettings(**known)


@router.get("/settings")
def read_settings(request: Request):
    return _current(request).model_dump()


@router.put("/settings", dependencies=[Depends(require_admin)])
def update_settings(request: Request, values: dict[str, Any] = Body(...)):
    unknown = sorted(set(values) - set(SiteSettings.model_fields))
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown settings: {', '.join(unknown)}")
    merged = {**_current(request).model_dump(), **values}
    try:
        settings = SiteSettings(**merged)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid settings values") from None
    get_repo(request).update_settings(settings.model_dump())
    return settings.model_dump()
