"""Shared dependencies for web routes."""

from __future__ import annotations

from fastapi import Request

from techpulse.core.models import AppConfig
from techpulse.db.repository import Repository
from techpulse.ratelimit.limiter import RateLimiter, RateLimitResult, rate_limit_headers
from techpulse.security.policy import ScriptPolicy
from techpulse.web.security import get_client_ip


class RateLimitExceeded(Exception):
    def __init__(self, result: RateLimitResult, headers: dict[str, str]) -> None:
        super().__init__("rate limit exceeded")
        self.result = result
        self.headers = headers


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_repo(request: Request) -> Repository:
    return request.app.state.repo


def get_limiter(request: Request) -> RateLimiter:
    return request.app.state.limiter


def get_policy(request: Request) -> ScriptPolicy:
    return request.app.state.policy


def enforce_rate_limit(request: Request, function_name: str) -> dict[str, str]:
    """Count this request against ``function_name``.

    Returns the X-RateLimit-* headers for the response, or raises
    RateLimitExceeded. Called from handler bodies so that request-body
    validation has already passed.
    """
    limiter = get_limiter(request)
    rule = limiter.rule_for(function_name)
    result = limiter.check(get_client_ip(request), function_name, rule)
    limiter.maybe_cleanup()
    headers = rate_limit_headers(result, rule.max_requests)
    if not result.allowed:
        raise RateLimitExceeded(result, headers)
    return headers
