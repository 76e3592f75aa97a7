"""XSS sanitization for article bodies and notification text."""

from __future__ import annotations

import re
from html import escape

import bleach
from bleach.css_sanitizer import CSSSanitizer
from bs4 import BeautifulSoup

_LOOKS_LIKE_HTML = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)

# Tags safe for reader-facing article rendering
_ALLOWED_TAGS = [
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "hr",
    "ul", "ol", "li",
    "a", "strong", "em", "b", "i", "u", "s", "strike",
    "blockquote", "code", "pre",
    "img", "figure", "figcaption",
    "table", "thead", "tbody", "tr", "th", "td",
    "div", "span", "section", "article",
]

# Publisher/admin long-form content may also embed players and ad slots
_TRUSTED_EXTRA_TAGS = ["iframe", "video", "audio", "source", "ins", "noscript"]

_ALLOWED_ATTRIBUTES = [
    "href", "target", "rel", "title", "alt", "src", "width", "height",
    "class", "id", "style", "loading", "type", "name",
]

_TRUSTED_EXTRA_ATTRIBUTES = [
    "frameborder", "allowfullscreen", "allow",
    "controls", "autoplay", "muted", "loop", "poster", "preload",
]

_ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

# Removed with their contents before the allow-list pass, in both modes.
# Trusted scripts are handled by techpulse.security.executor instead.
_FORBIDDEN_ELEMENTS = ["script", "style", "form", "input", "button", "textarea", "select", "object", "embed"]

_css_sanitizer = CSSSanitizer()


def _attribute_filter(allowed: frozenset[str]):
    def check(tag: str, name: str, value: str) -> bool:
        if name.lower().startswith("on"):
            return False
        return name in allowed or name.startswith("data-")
    return check


_UNTRUSTED_ATTRS = _attribute_filter(frozenset(_ALLOWED_ATTRIBUTES))
_TRUSTED_ATTRS = _attribute_filter(frozenset(_ALLOWED_ATTRIBUTES + _TRUSTED_EXTRA_ATTRIBUTES))


def looks_like_html(content: str) -> bool:
    return bool(_LOOKS_LIKE_HTML.search(content or ""))


def _drop_forbidden(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, "html.parser")
    for tag in soup.find_all(_FORBIDDEN_ELEMENTS):
        if not tag.decomposed:
            tag.decompose()
    return str(soup)


def _protect_external_links(clean_html: str) -> str:
    """Open absolute links in a new context without giving it our window."""
    soup = BeautifulSoup(clean_html, "html.parser")
    for link in soup.find_all("a", href=True):
        if link["href"].startswith(("http://", "https://")):
            link["target"] = "_blank"
            link["rel"] = "noopener noreferrer"
    return str(soup)


def sanitize_content(raw_html: str, trusted: bool = False) -> str:
    """Sanitize HTML, stripping dangerous tags/attributes while keeping content markup."""
    if trusted:
        tags = _ALLOWED_TAGS + _TRUSTED_EXTRA_TAGS
        attributes = _TRUSTED_ATTRS
    else:
        tags = _ALLOWED_TAGS
        attributes = _UNTRUSTED_ATTRS

    clean = bleach.clean(
        _drop_forbidden(raw_html),
        tags=tags,
        attributes=attributes,
        protocols=_ALLOWED_PROTOCOLS,
        css_sanitizer=_css_sanitizer,
        strip=True,
        strip_comments=True,
    )
    if not trusted:
        clean = _protect_external_links(clean)
    return clean.strip()


def render_plain_text(content: str) -> str:
    """Blank-line separated paragraphs, with no HTML interpretation at all."""
    paragraphs = [p.strip() for p in content.split("\n\n")]
    return "".join(f"<p>{escape(p)}</p>" for p in paragraphs if p)


def render_content(content: str, trusted: bool = False) -> str:
    """Return markup that is safe to inject for ``content``.

    Input that looks like HTML but sanitizes to nothing renders as an empty
    string; it is never re-read as plain text.
    """
    if not content:
        return ""
    if not looks_like_html(content):
        return render_plain_text(content)
    return sanitize_content(content, trusted=trusted)
