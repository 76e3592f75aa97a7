"""Schema migration runner for the TechPulse database."""

from __future__ import annotations

import sqlite3

from techpulse.core.database import get_connection

# Migrations keyed by target version number.
# Each migration runs SQL to advance from (version - 1) to version.
MIGRATIONS: dict[int, str] = {
    2: """
-- v2: RSS feeds and their fetched items
CREATE TABLE IF NOT EXISTS rss_feeds (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    category TEXT DEFAULT '',
    is_active INTEGER DEFAULT 1,
    last_fetched_at TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS rss_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    feed_id INTEGER NOT NULL REFERENCES rss_feeds(id) ON DELETE CASCADE,
    guid TEXT NOT NULL,
    title TEXT DEFAULT '',
    link TEXT DEFAULT '',
    description TEXT DEFAULT '',
    published_at TEXT,
    fetched_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (feed_id, guid)
);
CREATE INDEX IF NOT EXISTS idx_rss_items_feed ON rss_items(feed_id);

INSERT OR IGNORE INTO schema_version (version) VALUES (2);
""",
    3: """
-- v3: Site settings get their own table instead of a pseudo snippet location
CREATE TABLE IF NOT EXISTS site_settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

INSERT OR IGNORE INTO schema_version (version) VALUES (3);
""",
}


def get_current_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version from the database."""
    try:
        row = conn.execute("SELECT MAX(version) as v FROM schema_version").fetchone()
        return row["v"] if row and row["v"] else 0
    except sqlite3.OperationalError:
        return 0


def run_migrations(db_path: str) -> list[int]:
    """Run all pending migrations. Returns list of versions applied."""
    conn = get_connection(db_path)
    current = get_current_version(conn)
    applied: list[int] = []

    for version in sorted(MIGRATIONS.keys()):
        if version > current:
            conn.executescript(MIGRATIONS[version])
            applied.append(version)

    conn.close()
    return applied
