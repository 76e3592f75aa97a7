"""Single-article import for publishers."""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
from dataclasses import asdict, dataclass
from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from techpulse.security.content import sanitize_content
from techpulse.utils.http import get_client
from techpulse.utils.text import truncate

logger = logging.getLogger(__name__)

_LOCAL_SUFFIXES = (".localhost", ".local", ".internal")
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_MAX_REDIRECTS = 5


class InvalidImportURL(ValueError):
    """The URL is malformed or points somewhere the importer must not fetch."""


@dataclass
class ScrapedArticle:
    title: Optional[str]
    description: Optional[str]
    content: Optional[str]  # sanitized HTML
    text: str
    url: str
    site_name: Optional[str]
    image: Optional[str]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["siteName"] = data.pop("site_name")
        return data


def _is_internal_host(hostname: str) -> bool:
    host = hostname.lower().rstrip(".")
    if host == "localhost" or host.endswith(_LOCAL_SUFFIXES):
        return True
    try:
        addr = ipaddress.ip_address(host.split("%")[0])
    except ValueError:
        return False
    if getattr(addr, "ipv4_mapped", None):
        addr = addr.ipv4_mapped
    return (
        addr.is_private or addr.is_loopback or addr.is_link_local
        or addr.is_reserved or addr.is_multicast or addr.is_unspecified
    )


def normalize_import_url(url: str) -> str:
    """Return an absolute http(s) URL or raise InvalidImportURL."""
    formatted = url.strip()
    if _SCHEME.match(formatted):
        if not formatted.lower().startswith(("http://", "https://")):
            raise InvalidImportURL("Invalid URL format")
    else:
        formatted = f"https://{formatted}"
    try:
        parts = urlsplit(formatted)
        hostname = parts.hostname
    except ValueError:
        raise InvalidImportURL("Invalid URL format") from None
    if not hostname or " " in formatted:
        raise InvalidImportURL("Invalid URL format")
    if _is_internal_host(hostname):
        raise InvalidImportURL("URL host is not allowed")
    return formatted


def check_resolved_host(url: str) -> None:
    """Raise InvalidImportURL if any address ``url`` resolves to is internal."""
    hostname = urlsplit(url).hostname or ""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except (socket.gaierror, UnicodeError):
        raise InvalidImportURL("URL host could not be resolved") from None
    for info in infos:
        if _is_internal_host(str(info[4][0])):
            logger.warning("Import of %s refused: %s resolves to %s", url, hostname, info[4][0])
            raise InvalidImportURL("URL host is not allowed")


def fetch_article_page(url: str, max_redirects: int = _MAX_REDIRECTS) -> httpx.Response:
    """GET ``url``, validating every redirect target before following it.

    Raises InvalidImportURL for a refused hop and httpx errors for transport
    or HTTP failures.
    """
    target = normalize_import_url(url)
    with get_client(follow_redirects=False) as client:
        for _hop in range(max_redirects + 1):
            check_resolved_host(target)
            resp = client.get(target)
            if not resp.is_redirect:
                resp.raise_for_status()
                return resp
            target = normalize_import_url(urljoin(target, resp.headers.get("location", "")))
    raise httpx.TooManyRedirects(f"More than {max_redirects} redirects", request=resp.request)


def _meta(soup: BeautifulSoup, *names: str) -> Optional[str]:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


def extract_article(html: str, url: str) -> Optional[ScrapedArticle]:
    """Pull the main article out of a fetched page. None if nothing usable."""
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, "og:title")
    if not title:
        h1 = soup.find("h1")
        if h1:
            title = h1.get_text(strip=True)
        elif soup.title:
            title = soup.title.get_text(strip=True)

    content_tag = (
        soup.find("article")
        or soup.find("main")
        or soup.find(class_=lambda c: c and "content" in c.lower())
        or soup.find(class_=lambda c: c and "post" in c.lower())
    )
    if content_tag is None:
        return None

    paragraphs = [p.get_text(strip=True) for p in content_tag.find_all("p")]
    text = "\n\n".join(p for p in paragraphs if p)
    content = sanitize_content(content_tag.decode_contents(), trusted=False)
    if not text and not content:
        return None

    return ScrapedArticle(
        title=title or None,
        description=_meta(soup, "og:description", "description") or (truncate(text, 300) if text else None),
        content=content or None,
        text=text[:20_000],
        url=url,
        site_name=_meta(soup, "og:site_name"),
        image=_meta(soup, "og:image"),
    )


def scrape_article_content(url: str) -> Optional[ScrapedArticle]:
    """Fetch and extract content from a single article page."""
    try:
        resp = fetch_article_page(url)
    except httpx.HTTPError:
        logger.warning("Article fetch failed for %s", url, exc_info=True)
        return None
    return extract_article(resp.text, str(resp.url))
