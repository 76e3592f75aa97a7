"""RSS/Atom feed parsing and refresh."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import feedparser

from techpulse.utils.http import fetch_url
from techpulse.utils.text import clean_html

logger = logging.getLogger(__name__)


@dataclass
class FeedItem:
    guid: str
    title: str
    url: str
    summary: str
    published_at: Optional[str]  # ISO format string


def _published(entry) -> Optional[str]:
    for attr in ("published_parsed", "updated_parsed"):
        parsed = getattr(entry, attr, None)
        if parsed:
            try:
                return datetime(*parsed[:6]).isoformat()
            except (TypeError, ValueError):
                return None
    return None


def parse_feed(data: bytes | str) -> list[FeedItem]:
    """Parse an RSS/Atom document and return its items."""
    feed = feedparser.parse(data)
    items: list[FeedItem] = []

    for entry in feed.entries:
        link = getattr(entry, "link", "")
        guid = getattr(entry, "id", "") or link
        if not guid:
            continue

        summary = ""
        if hasattr(entry, "summary"):
            summary = clean_html(entry.summary)
        elif hasattr(entry, "description"):
            summary = clean_html(entry.description)

        items.append(FeedItem(
            guid=guid,
            title=clean_html(getattr(entry, "title", "")),
            url=link,
            summary=summary[:1000],
            published_at=_published(entry),
        ))

    return items


def refresh_feed(repo, feed: dict) -> int:
    """Fetch one feed and store unseen items. Returns how many were new."""
    resp = fetch_url(feed["url"])
    new = 0
    for item in parse_feed(resp.content):
        if repo.add_rss_item(
            feed["id"], item.guid, title=item.title, link=item.url,
            description=item.summary, published_at=item.published_at,
        ):
            new += 1
    repo.update_feed_fetched(feed["id"])
    return new


def refresh_feeds(repo, feed_id: Optional[int] = None) -> dict[str, int]:
    """Refresh one feed or every active feed.

    A failing feed is logged and reported as -1; the others still refresh.
    """
    if feed_id is not None:
        feed = repo.get_feed(feed_id)
        feeds = [feed] if feed else []
    else:
        feeds = repo.get_feeds(active_only=True)

    results: dict[str, int] = {}
    for feed in feeds:
        try:
            results[feed["name"]] = refresh_feed(repo, feed)
        except Exception:
            logger.warning("Failed to refresh feed %s (%s)", feed["name"], feed["url"], exc_info=True)
            results[feed["name"]] = -1
    return results
