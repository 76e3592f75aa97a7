"""Shared HTTP client with retries and sensible defaults."""

from __future__ import annotations

import httpx

_DEFAULT_TIMEOUT = 20.0
_DEFAULT_HEADERS = {
    "User-Agent": "TechPulse/0.1 (feed reader and article importer)"
}


def get_client(**kwargs) -> httpx.Client:
    """Return a configured httpx.Client."""
    return httpx.Client(
        timeout=kwargs.pop("timeout", _DEFAULT_TIMEOUT),
        headers={**_DEFAULT_HEADERS, **kwargs.pop("headers", {})},
        follow_redirects=kwargs.pop("follow_redirects", True),
        **kwargs,
    )


def fetch_url(url: str, **kwargs) -> httpx.Response:
    """Fetch a URL with retries. Raises the last error once retries run out."""
    max_retries = kwargs.pop("max_retries", 2)
    last_exc: Exception | None = None
    with get_client(**kwargs) as client:
        for _attempt in range(max_retries + 1):
            try:
                resp = client.get(url)
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as exc:
                # Client errors will not change on retry
                if exc.response.status_code < 500:
                    raise
                last_exc = exc
            except httpx.RequestError as exc:
                last_exc = exc
    raise last_exc
