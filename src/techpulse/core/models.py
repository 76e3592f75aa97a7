"""Pydantic models for the TechPulse platform."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_SNIPPET_CODE_LENGTH = 50_000


class SnippetLocation(str, Enum):
    HEADER = "header"
    BODY_START = "body-start"
    BODY_END = "body-end"
    SIDEBAR = "sidebar"
    IN_CONTENT = "in-content"
    FOOTER = "footer"
    CUSTOM = "custom"


# Older page templates still send these spellings.
LOCATION_ALIASES: dict[str, SnippetLocation] = {
    "head": SnippetLocation.HEADER,
    "body_start": SnippetLocation.BODY_START,
    "body_end": SnippetLocation.BODY_END,
}


def parse_location(value: str) -> SnippetLocation:
    """Map a wire value to a SnippetLocation. Raises ValueError if unknown."""
    if value in LOCATION_ALIASES:
        return LOCATION_ALIASES[value]
    return SnippetLocation(value)


class UserRole(str, Enum):
    ADMIN = "admin"
    PUBLISHER = "publisher"
    READER = "reader"


class AIProvider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class AIRequestType(str, Enum):
    GENERATE = "generate"
    SUGGEST_HEADLINE = "suggest-headline"
    SUGGEST_SUMMARY = "suggest-summary"
    SUGGEST_SEO = "suggest-seo"
    IMPROVE_CONTENT = "improve-content"


# --- HTML Snippet ---

class SnippetInput(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    location: SnippetLocation
    code: str = Field(min_length=1, max_length=MAX_SNIPPET_CODE_LENGTH)
    is_active: bool = True
    priority: int = 0

    @field_validator("location", mode="before")
    @classmethod
    def _normalize_location(cls, v):
        if isinstance(v, str):
            return parse_location(v)
        return v


class SnippetUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[SnippetLocation] = None
    code: Optional[str] = Field(default=None, min_length=1, max_length=MAX_SNIPPET_CODE_LENGTH)
    is_active: Optional[bool] = None
    priority: Optional[int] = None

    @field_validator("location", mode="before")
    @classmethod
    def _normalize_location(cls, v):
        if isinstance(v, str):
            return parse_location(v)
        return v


class SnippetRequest(BaseModel):
    location: str

    @field_validator("location")
    @classmethod
    def _check_location(cls, v: str) -> str:
        return parse_location(v).value


class SnippetResponse(BaseModel):
    html: str = ""
    scripts: list[str] = Field(default_factory=list)
    inlineScripts: list[str] = Field(default_factory=list)


# --- Site Settings ---

class SiteSettings(BaseModel):
    site_name: str = Field(default="TechPulse", max_length=100)
    site_description: str = Field(default="", max_length=500)
    allow_comments: bool = True
    require_approval: bool = True
    featured_articles_count: int = Field(default=5, ge=0, le=50)
    articles_per_page: int = Field(default=12, ge=1, le=100)
    allow_registrations: bool = True
    allow_publisher_applications: bool = True


# --- RSS ---

class FeedRefreshRequest(BaseModel):
    feed_id: Optional[int] = None


# --- Publisher tools ---

class ArticleImportRequest(BaseModel):
    url: str = Field(min_length=1, max_length=2048)


class AIContentRequest(BaseModel):
    type: AIRequestType
    topic: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = Field(default=None, max_length=50_000)
    title: Optional[str] = Field(default=None, max_length=300)


class ContentPreviewRequest(BaseModel):
    content: str = Field(max_length=200_000)
    trusted: bool = False


class SnippetPreviewRequest(BaseModel):
    code: str = Field(max_length=MAX_SNIPPET_CODE_LENGTH)


class TokenRequest(BaseModel):
    password: str = Field(min_length=1, max_length=200)


# --- Config models ---

class RateLimitRule(BaseModel):
    max_requests: int = Field(ge=1)
    window_seconds: float = Field(gt=0)


def _default_rules() -> dict[str, RateLimitRule]:
    return {
        "get-html-snippets": RateLimitRule(max_requests=60, window_seconds=60),
        "fetch-rss": RateLimitRule(max_requests=30, window_seconds=60),
        "scrape-article": RateLimitRule(max_requests=20, window_seconds=60),
        "ai-content": RateLimitRule(max_requests=20, window_seconds=60),
        "auth-token": RateLimitRule(max_requests=5, window_seconds=900),
    }


class RateLimitSettings(BaseModel):
    rules: dict[str, RateLimitRule] = Field(default_factory=_default_rules)
    cleanup_probability: float = Field(default=0.01, ge=0.0, le=1.0)
    log_sample_every: int = Field(default=5, ge=1)
    warning_ratio: float = Field(default=0.8, gt=0.0, le=1.0)


class AuthConfig(BaseModel):
    secret_key: str = ""
    admin_hash: str = ""
    admin_password: str = ""
    token_max_age: int = 86400


class AIConfig(BaseModel):
    provider: AIProvider = AIProvider.ANTHROPIC
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 2000
    temperature: float = 0.7


class SnippetConfig(BaseModel):
    max_code_length: int = MAX_SNIPPET_CODE_LENGTH


class AppConfig(BaseModel):
    site_name: str = "TechPulse"
    ai: AIConfig = Field(default_factory=AIConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)
    snippets: SnippetConfig = Field(default_factory=SnippetConfig)
    cors_origins: list[str] = Field(default_factory=list)
    db_path: str = "data/techpulse.db"
