"""Server-side sanitizing of globally injected HTML snippets.

Raw snippet code is stored verbatim for admins to edit but only ever leaves
the server through :func:`sanitize_snippet_html`: every ``<script>`` is
removed from the markup and, if the policy admits it, returned out-of-band as
a URL or an inline body.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag
from bs4.element import PreformattedString

from techpulse.security.policy import SERVER_POLICY, ScriptPolicy, ScriptVerdict

logger = logging.getLogger(__name__)

# Elements removed together with everything inside them.
_STRIPPED_ELEMENTS = ("object", "embed", "form")

# Event handler content attributes from the HTML living standard. Enumerated
# so that attributes which merely start with "on" are left alone.
EVENT_HANDLER_ATTRIBUTES = frozenset({
    "onabort", "onafterprint", "onanimationend", "onanimationiteration",
    "onanimationstart", "onauxclick", "onbeforeinput", "onbeforeprint",
    "onbeforeunload", "onblur", "oncancel", "oncanplay", "oncanplaythrough",
    "onchange", "onclick", "onclose", "oncontextmenu", "oncopy", "oncuechange",
    "oncut", "ondblclick", "ondrag", "ondragend", "ondragenter", "ondragleave",
    "ondragover", "ondragstart", "ondrop", "ondurationchange", "onemptied",
    "onended", "onerror", "onfocus", "onfocusin", "onfocusout",
    "onformdata", "onfullscreenchange", "onhashchange", "oninput", "oninvalid",
    "onkeydown", "onkeypress", "onkeyup", "onload", "onloadeddata",
    "onloadedmetadata", "onloadstart", "onmessage", "onmousedown",
    "onmouseenter", "onmouseleave", "onmousemove", "onmouseout", "onmouseover",
    "onmouseup", "onmousewheel", "onoffline", "ononline", "onpagehide",
    "onpageshow", "onpaste", "onpause", "onplay", "onplaying",
    "onpointercancel", "onpointerdown", "onpointerenter", "onpointerleave",
    "onpointermove", "onpointerout", "onpointerover", "onpointerup",
    "onpopstate", "onprogress", "onratechange", "onreset", "onresize",
    "onscroll", "onscrollend", "onsearch", "onseeked", "onseeking", "onselect",
    "onselectionchange", "onselectstart", "onshow", "onstalled", "onstorage",
    "onsubmit", "onsuspend", "ontimeupdate", "ontoggle", "ontouchcancel",
    "ontouchend", "ontouchmove", "ontouchstart", "ontransitionend",
    "onunload", "onvolumechange", "onwaiting", "onwheel",
})

# Attributes that carry markup of their own.
_MARKUP_ATTRIBUTES = frozenset({"srcdoc"})

_BLOCKED_URL_PREFIXES = ("javascript:", "vbscript:", "data:text/html")
_URL_NOISE = re.compile(r"[\x00-\x20]+")


@dataclass
class SanitizedSnippet:
    html: str = ""
    scripts: list[str] = field(default_factory=list)
    inline_scripts: list[str] = field(default_factory=list)

    def to_response(self) -> dict:
        return {"html": self.html, "scripts": self.scripts, "inlineScripts": self.inline_scripts}


def _has_blocked_scheme(value: str) -> bool:
    normalized = _URL_NOISE.sub("", value).lower()
    return normalized.startswith(_BLOCKED_URL_PREFIXES)


def _dangerous_attributes(tag: Tag) -> Iterator[tuple[str, str]]:
    """Yield (attribute, reason) for every attribute the narrow pass removes."""
    for name, value in tag.attrs.items():
        lowered = name.lower()
        if lowered in EVENT_HANDLER_ATTRIBUTES:
            yield name, "event handler"
        elif lowered in _MARKUP_ATTRIBUTES:
            yield name, "inline document"
        elif isinstance(value, str) and _has_blocked_scheme(value):
            yield name, "blocked URL scheme"


def _extract_scripts(soup: BeautifulSoup, policy: ScriptPolicy) -> tuple[list[str], list[str]]:
    scripts: list[str] = []
    inline_scripts: list[str] = []
    for tag in soup.find_all("script"):
        src = tag.get("src")
        code = tag.string or ""
        result = policy.classify(src, code)
        if result.verdict is ScriptVerdict.TRUSTED:
            url = src.strip()
            if url not in scripts:
                scripts.append(url)
        elif result.verdict is ScriptVerdict.SAFE_INLINE:
            inline_scripts.append(code.strip())
        else:
            logger.debug("Dropped script (%s)", result.rule)
        tag.decompose()
    return scripts, inline_scripts


def _markup_declarations(soup: BeautifulSoup) -> list[PreformattedString]:
    # Comments, CDATA, doctypes, declarations and processing instructions.
    # Browsers reparse these as bogus comments that can end early.
    return soup.find_all(string=lambda s: isinstance(s, PreformattedString))


def _strip_dangerous(soup: BeautifulSoup) -> None:
    for node in _markup_declarations(soup):
        node.extract()
    for tag in soup.find_all(list(_STRIPPED_ELEMENTS)):
        if not tag.decomposed:
            tag.decompose()
    for tag in soup.find_all(True):
        for name, _reason in list(_dangerous_attributes(tag)):
            del tag[name]


def sanitize_snippet_html(raw: str, policy: ScriptPolicy = SERVER_POLICY) -> SanitizedSnippet:
    """Split raw snippet code into safe markup and admitted scripts.

    Never raises on hostile input; anything unrecognised is simply dropped.
    """
    if not raw or not raw.strip():
        return SanitizedSnippet()

    soup = BeautifulSoup(raw, "html.parser")
    scripts, inline_scripts = _extract_scripts(soup, policy)
    _strip_dangerous(soup)
    return SanitizedSnippet(
        html=str(soup).strip(),
        scripts=scripts,
        inline_scripts=inline_scripts,
    )


def lint_snippet(code: str, policy: ScriptPolicy = SERVER_POLICY) -> list[str]:
    """Explain to an admin what the sanitizer will remove from ``code``.

    Advisory only: the authoritative gate is :func:`sanitize_snippet_html`.
    """
    warnings: list[str] = []
    soup = BeautifulSoup(code or "", "html.parser")

    for tag in soup.find_all("script"):
        src = tag.get("src")
        result = policy.classify(src, tag.string or "")
        if result.verdict is not ScriptVerdict.REJECTED:
            continue
        if src:
            host = urlsplit(src.strip()).hostname or src.strip()
            warnings.append(
                f"External script from untrusted domain '{host}' will be removed."
            )
        else:
            warnings.append(
                "Inline script does not match a known ad or analytics pattern and will be removed."
            )

    if _markup_declarations(soup):
        warnings.append("Comments, CDATA sections and other markup declarations will be removed.")

    for name in _STRIPPED_ELEMENTS:
        if soup.find(name):
            warnings.append(f"<{name}> elements are not allowed and will be removed with their contents.")

    for tag in soup.find_all(True):
        if tag.name == "script":
            continue
        for attr, reason in _dangerous_attributes(tag):
            warnings.append(f"Attribute '{attr}' on <{tag.name}> ({reason}) will be removed.")

    return warnings


class SnippetService:
    """Loads the active snippets for a location and sanitizes them as one blob."""

    def __init__(self, repo, policy: Optional[ScriptPolicy] = None) -> None:
        self.repo = repo
        self.policy = policy or SERVER_POLICY

    def render(self, location: str) -> SanitizedSnippet:
        rows = self.repo.get_active_snippets(location)
        if not rows:
            return SanitizedSnippet()
        combined = "\n".join(r["code"] for r in rows)
        return sanitize_snippet_html(combined, self.policy)
