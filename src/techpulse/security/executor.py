"""Admission and placement of scripts found in trusted content.

The page is modelled as a BeautifulSoup document. Approved scripts are
appended to ``<body>`` carrying a marker attribute so that every pass can
find and remove what an earlier pass injected.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from bs4 import BeautifulSoup, Tag

from techpulse.security.content import render_content
from techpulse.security.policy import CLIENT_POLICY, ScriptPolicy, ScriptVerdict

TRUSTED_SCRIPT_MARKER = "data-trusted-content"

_PAGE_SHELL = "<html><head></head><body></body></html>"


@dataclass(frozen=True)
class ApprovedScript:
    src: Optional[str] = None
    code: Optional[str] = None
    rule: str = ""


def select_scripts(
    raw_html: str, trusted: bool, policy: ScriptPolicy = CLIENT_POLICY,
) -> list[ApprovedScript]:
    """Scripts in ``raw_html`` that may run, in document order.

    Untrusted content never runs scripts. Anything the policy rejects is
    dropped silently.
    """
    if not trusted or not raw_html:
        return []
    soup = BeautifulSoup(raw_html, "html.parser")
    approved: list[ApprovedScript] = []
    for tag in soup.find_all("script"):
        src = tag.get("src")
        code = tag.string or ""
        result = policy.classify(src, code)
        if result.verdict is ScriptVerdict.TRUSTED:
            approved.append(ApprovedScript(src=src.strip(), rule=result.rule))
        elif result.verdict is ScriptVerdict.SAFE_INLINE:
            approved.append(ApprovedScript(code=code, rule=result.rule))
    return approved


class ScriptInjector:
    """Injects approved scripts into a document and takes them out again."""

    def __init__(self, document: BeautifulSoup, policy: ScriptPolicy = CLIENT_POLICY) -> None:
        self.document = document
        self.policy = policy
        self._generation = 0

    def _body(self) -> Tag:
        body = self.document.body
        if body is None:
            body = self.document.new_tag("body")
            self.document.append(body)
        return body

    def injected(self) -> list[Tag]:
        return self.document.find_all("script", attrs={TRUSTED_SCRIPT_MARKER: "true"})

    def clear(self) -> int:
        """Remove every marker-tagged script. Returns how many were removed."""
        tags = self.injected()
        for tag in tags:
            tag.decompose()
        return len(tags)

    def inject(self, raw_html: str, trusted: bool) -> list[Tag]:
        """Replace any earlier injection with the scripts approved in ``raw_html``."""
        self.clear()
        self._generation += 1
        body = self._body()
        tags: list[Tag] = []
        try:
            for index, script in enumerate(select_scripts(raw_html, trusted, self.policy)):
                tag = self.document.new_tag("script")
                tag[TRUSTED_SCRIPT_MARKER] = "true"
                tag["id"] = f"trusted-script-{self._generation}-{index}"
                if script.src:
                    tag["src"] = script.src
                    tag["async"] = ""
                else:
                    tag.string = script.code
                body.append(tag)
                tags.append(tag)
        except Exception:
            self.clear()
            raise
        return tags

    @contextmanager
    def mounted(self, raw_html: str, trusted: bool) -> Iterator[list[Tag]]:
        """Scripts stay in the document only for the duration of the block."""
        tags = self.inject(raw_html, trusted)
        try:
            yield tags
        finally:
            self.clear()


def render_preview(content: str, trusted: bool, policy: ScriptPolicy = CLIENT_POLICY) -> dict:
    """Render ``content`` as a full page the way a reader's browser would get it."""
    body_html = render_content(content, trusted=trusted)
    document = BeautifulSoup(_PAGE_SHELL, "html.parser")
    container = document.new_tag("div", attrs={"class": "article-content"})
    container.append(BeautifulSoup(body_html, "html.parser"))
    document.body.append(container)

    injector = ScriptInjector(document, policy)
    with injector.mounted(content, trusted) as tags:
        page = str(document)
        scripts = [t["src"] for t in tags if t.get("src")]
        inline_scripts = [t.string or "" for t in tags if not t.get("src")]

    return {
        "html": body_html,
        "page": page,
        "scripts": scripts,
        "inlineScripts": inline_scripts,
    }
