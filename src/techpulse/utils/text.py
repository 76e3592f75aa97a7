"""Plain-text helpers for feed summaries and imported articles."""

from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")


def clean_html(html: Optional[str]) -> str:
    """Visible text of an HTML fragment with entities decoded and whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return _WHITESPACE.sub(" ", text).strip()


def truncate(text: str, limit: int = 300, ellipsis: str = "...") -> str:
    """Shorten ``text`` to at most ``limit`` characters.

    Cuts at the last space when one falls in the back half, so short
    descriptions do not end mid-word.
    """
    if len(text) <= limit:
        return text
    head = text[: limit - len(ellipsis)]
    cut = head.rfind(" ")
    if cut > limit // 2:
        head = head[:cut]
    return head.rstrip(" ,;:") + ellipsis
