"""Shared script admission policy for injected and trusted content.

Both the snippet sanitizer (server responses) and the script executor
(publisher previews) classify ``<script>`` elements through this module, so
the trusted-domain list and the inline shapes exist in exactly one place.

A script is one of three things:

* ``TRUSTED``: external ``src`` whose hostname is, or is a subdomain of, a
  listed domain.
* ``SAFE_INLINE``: inline body matching the policy's inline rules.
* ``REJECTED``: everything else. Rejected scripts are dropped, never echoed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

POLICY_VERSION = "2026.01"

TRUSTED_SCRIPT_DOMAINS: tuple[str, ...] = (
    # Ad networks
    "adsterra.com",
    "alwingulla.com",
    "highperformanceformat.com",
    "effectivegatecpm.com",
    "googlesyndication.com",
    "googleadservices.com",
    "doubleclick.net",
    "adskeeper.com",
    "mgid.com",
    "taboola.com",
    "outbrain.com",
    "propellerads.com",
    "revcontent.com",
    "infolinks.com",
    "media.net",
    "amazon-adsystem.com",
    "adnxs.com",
    "criteo.com",
    "pubmatic.com",
    # Analytics
    "googletagmanager.com",
    "google-analytics.com",
    "analytics.tiktok.com",
    "clarity.ms",
    "hotjar.com",
    "cdn.segment.com",
    # Social embeds
    "facebook.net",
    "platform.twitter.com",
    "instagram.com",
    "youtube.com",
    "player.vimeo.com",
    "w.soundcloud.com",
    "open.spotify.com",
    "cdn.embedly.com",
)

_ALLOWED_SCHEMES = ("http", "https", "")


class ScriptVerdict(str, Enum):
    TRUSTED = "trusted"
    SAFE_INLINE = "safe_inline"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Classification:
    verdict: ScriptVerdict
    rule: str = ""


# ---- Inline shapes ----

_IDENT = r"[A-Za-z_$][\w$]*"
_WIN = r"(?:window\.)?"
_DECL = r"(?:(?:var|let|const)\s+)?"
# Literal containers may not hold calls, assignments, templates or markup.
_OBJ = r"\{[^<>;()`=]*\}"
_ARR = r"\[[^<>;()`=]*\]"
_STR = r"""'[^'\\<>\n]*'|"[^"\\<>\n]*\""""
_NUM = r"-?\d+(?:\.\d+)?"
_LIT = rf"(?:{_STR}|{_NUM}|true|false|null|{_OBJ}|{_ARR}|new\s+Date\(\s*\))"
_ARGS = rf"(?:{_LIT}(?:\s*,\s*{_LIT})*)?"
_QUEUE = rf"{_WIN}{_IDENT}\s*=\s*{_WIN}{_IDENT}\s*\|\|\s*\[\s*\]"


@dataclass(frozen=True)
class InlineRule:
    """One recognised inline-script shape.

    ``statement`` rules must together cover the whole script, one statement
    after another. ``marker`` rules only need to occur somewhere in it.
    """

    name: str
    pattern: str
    kind: str = "statement"
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.kind == "statement":
            regex = re.compile(rf"(?:{self.pattern})\s*(?:;\s*|\n\s*|\Z)")
        else:
            regex = re.compile(self.pattern)
        object.__setattr__(self, "_regex", regex)

    def match_at(self, text: str, pos: int) -> Optional[re.Match]:
        return self._regex.match(text, pos)

    def search(self, text: str) -> bool:
        return self._regex.search(text) is not None


SERVER_INLINE_RULES: tuple[InlineRule, ...] = (
    InlineRule("object_assignment", rf"{_DECL}{_WIN}{_IDENT}(?:\.{_IDENT})*\s*=\s*{_OBJ}"),
    InlineRule("queue_init", rf"{_DECL}{_QUEUE}"),
    InlineRule(
        "queue_push",
        rf"(?:\(\s*{_QUEUE}\s*\)|{_WIN}{_IDENT})\s*\.push\(\s*{_ARGS}\s*\)",
    ),
    InlineRule(
        "gtag_shim",
        r"function\s+gtag\s*\(\s*\)\s*\{\s*(?:window\.)?dataLayer\.push\(\s*arguments\s*\)\s*;?\s*\}",
    ),
    InlineRule(
        "sdk_call",
        rf"{_WIN}(?:gtag|fbq|twq|ttq\.(?:load|page|track|identify))\s*\(\s*{_ARGS}\s*\)",
    ),
)

_SDK_MARKERS = (
    "atOptions", "adsbygoogle", "dataLayer", "fbq(", "gtag(", "_tfa.",
    "mgid.", "outbrain.", "disqus_config", "DISQUS.", "instgrm.", "twttr.",
    "SC.Widget", "Spotify.",
)

CLIENT_INLINE_RULES: tuple[InlineRule, ...] = SERVER_INLINE_RULES + (
    InlineRule("leading_assignment", r"^\s*\w+\s*=\s*\{", kind="marker"),
    InlineRule("sdk_marker", "|".join(re.escape(m) for m in _SDK_MARKERS), kind="marker"),
)


def _hostname_matches(hostname: str, domains: tuple[str, ...]) -> bool:
    return any(hostname == d or hostname.endswith("." + d) for d in domains)


@dataclass(frozen=True)
class ScriptPolicy:
    """Allow-list of script domains plus the inline shapes to accept."""

    trusted_domains: tuple[str, ...] = TRUSTED_SCRIPT_DOMAINS
    inline_rules: tuple[InlineRule, ...] = SERVER_INLINE_RULES
    version: str = POLICY_VERSION

    def is_trusted_source(self, src: str) -> bool:
        try:
            parts = urlsplit(src.strip())
            hostname = parts.hostname
        except ValueError:
            return False
        if parts.scheme.lower() not in _ALLOWED_SCHEMES or not hostname:
            return False
        return _hostname_matches(hostname.lower(), self.trusted_domains)

    def match_inline(self, code: str) -> Optional[str]:
        """Name of the rule accepting ``code``, or None."""
        text = code.strip()
        if not text:
            return None

        statements = [r for r in self.inline_rules if r.kind == "statement"]
        pos = 0
        first: Optional[str] = None
        while pos < len(text):
            for rule in statements:
                m = rule.match_at(text, pos)
                if m and m.end() > pos:
                    first = first or rule.name
                    pos = m.end()
                    break
            else:
                first = None
                break
        if first:
            return first

        for rule in self.inline_rules:
            if rule.kind == "marker" and rule.search(text):
                return rule.name
        return None

    def classify(self, src: Optional[str], code: str = "") -> Classification:
        if src is not None and src.strip():
            if self.is_trusted_source(src):
                return Classification(ScriptVerdict.TRUSTED, "trusted_domain")
            return Classification(ScriptVerdict.REJECTED, "untrusted_domain")
        rule = self.match_inline(code)
        if rule:
            return Classification(ScriptVerdict.SAFE_INLINE, rule)
        return Classification(ScriptVerdict.REJECTED, "unrecognised_inline")


SERVER_POLICY = ScriptPolicy()
CLIENT_POLICY = ScriptPolicy(inline_rules=CLIENT_INLINE_RULES)
