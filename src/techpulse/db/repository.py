"""CRUD operations for all TechPulse database tables."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Optional

from techpulse.core.database import get_connection

_SNIPPET_COLUMNS = ("name", "location", "code", "is_active", "priority")


class Repository:
    """Central data-access layer for the TechPulse database."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def _conn(self) -> sqlite3.Connection:
        return get_connection(self.db_path)

    # ---- HTML Snippets ----

    def create_snippet(
        self, name: str, location: str, code: str,
        is_active: bool = True, priority: int = 0,
    ) -> int:
        conn = self._conn()
        cur = conn.execute(
            """INSERT INTO html_snippets (name, location, code, is_active, priority)
               VALUES (?, ?, ?, ?, ?)""",
            (name, location, code, int(is_active), priority),
        )
        conn.commit()
        row_id = cur.lastrowid
        conn.close()
        return row_id

    def get_snippet(self, snippet_id: int) -> Optional[dict]:
        conn = self._conn()
        row = conn.execute("SELECT * FROM html_snippets WHERE id = ?", (snippet_id,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def get_snippets(self, location: Optional[str] = None) -> list[dict]:
        conn = self._conn()
        if location:
            rows = conn.execute(
                "SELECT * FROM html_snippets WHERE location = ? ORDER BY priority DESC, id",
                (location,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM html_snippets ORDER BY location, priority DESC, id"
            ).fetchall()
        conn.close()
        return [dict(r) for r in rows]

    def get_active_snippets(self, location: str) -> list[dict]:
        """Active snippets for a location, highest priority first, id breaks ties."""
        conn = self._conn()
        rows = conn.execute(
            """SELECT id, code, priority FROM html_snippets
               WHERE location = ? AND is_active = 1
               ORDER BY priority DESC, id ASC""",
            (location,),
        ).fetchall()
        conn.close()
        return [dict(r) for r in rows]

    def update_snippet(self, snippet_id: int, **kwargs) -> bool:
        fields = {k: v for k, v in kwargs.items() if k in _SNIPPET_COLUMNS and v is not None}
        if "is_active" in fields:
            fields["is_active"] = int(fields["is_active"])
        if not fields:
            return self.get_snippet(snippet_id) is not None
        sets = ", ".join(f"{k} = ?" for k in fields)
        vals = list(fields.values()) + [snippet_id]
        conn = self._conn()
        cur = conn.execute(
            f"UPDATE html_snippets SET {sets}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            vals,
        )
        conn.commit()
        conn.close()
        return cur.rowcount > 0

    def delete_snippet(self, snippet_id: int) -> bool:
        conn = self._conn()
        cur = conn.execute("DELETE FROM html_snippets WHERE id = ?", (snippet_id,))
        conn.commit()
        conn.close()
        return cur.rowcount > 0

    # ---- Rate Limits ----

    def hit_rate_limit(
        self, client_ip: str, function_name: str,
        max_requests: int, window_seconds: float, now: float,
    ) -> dict:
        """Count one request against the open window for (ip, function).

        The lookup and the write happen inside a single IMMEDIATE transaction,
        so concurrent callers are serialised by SQLite's write lock and never
        observe the same count.
        """
        conn = self._conn()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                """SELECT id, request_count, blocked_count, window_start, window_end
                   FROM rate_limits
                   WHERE client_ip = ? AND function_name = ? AND window_end > ?
                   ORDER BY window_start DESC LIMIT 1""",
                (client_ip, function_name, now),
            ).fetchone()

            if row is None:
                window_end = now + window_seconds
                conn.execute(
                    """INSERT INTO rate_limits
                       (client_ip, function_name, request_count, blocked_count, window_start, window_end)
                       VALUES (?, ?, 1, 0, ?, ?)""",
                    (client_ip, function_name, now, window_end),
                )
                outcome = {
                    "allowed": True, "new_window": True, "request_count": 1,
                    "blocked_count": 0, "window_end": window_end,
                }
            elif row["request_count"] >= max_requests:
                conn.execute(
                    """UPDATE rate_limits SET blocked_count = blocked_count + 1,
                       updated_at = CURRENT_TIMESTAMP WHERE id = ?""",
                    (row["id"],),
                )
                outcome = {
                    "allowed": False, "new_window": False, "request_count": row["request_count"],
                    "blocked_count": row["blocked_count"] + 1, "window_end": row["window_end"],
                }
            else:
                conn.execute(
                    """UPDATE rate_limits SET request_count = request_count + 1,
                       updated_at = CURRENT_TIMESTAMP WHERE id = ?""",
                    (row["id"],),
                )
                outcome = {
                    "allowed": True, "new_window": False, "request_count": row["request_count"] + 1,
                    "blocked_count": row["blocked_count"], "window_end": row["window_end"],
                }
            conn.execute("COMMIT")
            return outcome
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def cleanup_expired_rate_limits(self, now: float) -> int:
        """Delete windows that closed before `now`. Returns rows removed."""
        conn = self._conn()
        cur = conn.execute("DELETE FROM rate_limits WHERE window_end < ?", (now,))
        conn.commit()
        conn.close()
        return cur.rowcount

    def get_rate_limits(
        self, function_name: Optional[str] = None, limit: int = 50,
    ) -> list[dict]:
        conn = self._conn()
        if function_name:
            rows = conn.execute(
                """SELECT * FROM rate_limits WHERE function_name = ?
                   ORDER BY window_start DESC LIMIT ?""",
                (function_name, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM rate_limits ORDER BY window_start DESC LIMIT ?", (limit,)
            ).fetchall()
        conn.close()
        return [dict(r) for r in rows]

    # ---- Site Settings ----

    def get_settings(self) -> dict[str, Any]:
        conn = self._conn()
        rows = conn.execute("SELECT key, value FROM site_settings").fetchall()
        conn.close()
        return {r["key"]: json.loads(r["value"]) for r in rows}

    def update_settings(self, values: dict[str, Any]) -> None:
        conn = self._conn()
        for key, value in values.items():
            conn.execute(
                """INSERT INTO site_settings (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                   updated_at = CURRENT_TIMESTAMP""",
                (key, json.dumps(value)),
            )
        conn.commit()
        conn.close()

    # ---- RSS Feeds ----

    def create_feed(self, name: str, url: str, category: str = "") -> int:
        conn = self._conn()
        cur = conn.execute(
            "INSERT INTO rss_feeds (name, url, category) VALUES (?, ?, ?)",
            (name, url, category),
        )
        conn.commit()
        row_id = cur.lastrowid
        conn.close()
        return row_id

    def get_feeds(self, active_only: bool = True) -> list[dict]:
        conn = self._conn()
        if active_only:
            rows = conn.execute("SELECT * FROM rss_feeds WHERE is_active = 1 ORDER BY id").fetchall()
        else:
            rows = conn.execute("SELECT * FROM rss_feeds ORDER BY id").fetchall()
        conn.close()
        return [dict(r) for r in rows]

    def get_feed(self, feed_id: int) -> Optional[dict]:
        conn = self._conn()
        row = conn.execute("SELECT * FROM rss_feeds WHERE id = ?", (feed_id,)).fetchone()
        conn.close()
        return dict(row) if row else None

    def update_feed_fetched(self, feed_id: int) -> None:
        conn = self._conn()
        conn.execute(
            "UPDATE rss_feeds SET last_fetched_at = CURRENT_TIMESTAMP WHERE id = ?",
            (feed_id,),
        )
        conn.commit()
        conn.close()

    def add_rss_item(
        self, feed_id: int, guid: str, title: str = "", link: str = "",
        description: str = "", published_at: Optional[str] = None,
    ) -> bool:
        """Insert an item unless its guid is already stored. Returns True if new."""
        conn = self._conn()
        cur = conn.execute(
            """INSERT OR IGNORE INTO rss_items
               (feed_id, guid, title, link, description, published_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (feed_id, guid, title, link, description, published_at),
        )
        conn.commit()
        conn.close()
        return cur.rowcount > 0

    def get_rss_items(self, feed_id: int, limit: int = 50) -> list[dict]:
        conn = self._conn()
        rows = conn.execute(
            "SELECT * FROM rss_items WHERE feed_id = ? ORDER BY id DESC LIMIT ?",
            (feed_id, limit),
        ).fetchall()
        conn.close()
        return [dict(r) for r in rows]

    # ---- Stats ----

    def get_table_counts(self) -> dict[str, int]:
        conn = self._conn()
        counts = {}
        for table in ("html_snippets", "rate_limits", "rss_feeds", "rss_items"):
            row = conn.execute(f"SELECT COUNT(*) as c FROM {table}").fetchone()
            counts[table] = row["c"]
        conn.close()
        return counts
