"""Fixed-window rate limiter persisted in SQLite.

One row per (client IP, function, window). A request after ``window_end``
opens a new window instead of reusing the old row. When the database cannot
be reached the limiter degrades to a process-local :class:`MemoryFallback`
and says so in the logs.
"""

from __future__ import annotations

import json
import logging
import math
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from techpulse.core.models import RateLimitRule, RateLimitSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in: float  # seconds until the stored window closes
    count: int


class MemoryFallback:
    """Process-local windows used while the database is unavailable.

    Not shared between workers and lost on restart. Once the map holds
    ``sweep_at`` windows, opening another one first drops every closed window.
    """

    def __init__(self, sweep_at: int = 1024) -> None:
        self._windows: dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()
        self.sweep_at = sweep_at

    def hit(self, client_ip: str, function_name: str, rule: RateLimitRule, now: float) -> RateLimitResult:
        key = (function_name, client_ip)
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window["window_end"]:
                if window is None and len(self._windows) >= self.sweep_at:
                    self._drop_closed(now)
                self._windows[key] = {
                    "count": 1, "blocked": 0, "window_end": now + rule.window_seconds,
                }
                return RateLimitResult(True, rule.max_requests - 1, rule.window_seconds, 1)

            reset_in = max(0.0, window["window_end"] - now)
            if window["count"] >= rule.max_requests:
                window["blocked"] += 1
                return RateLimitResult(False, 0, reset_in, window["count"])

            window["count"] += 1
            return RateLimitResult(
                True, rule.max_requests - window["count"], reset_in, window["count"],
            )

    def _drop_closed(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if w["window_end"] <= now]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def purge(self, now: float) -> int:
        with self._lock:
            return self._drop_closed(now)

    def __len__(self) -> int:
        return len(self._windows)


class RateLimiter:
    """Counts requests per (client IP, function) against the configured rules."""

    def __init__(
        self,
        repo,
        settings: Optional[RateLimitSettings] = None,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
        fallback: Optional[MemoryFallback] = None,
    ) -> None:
        self.repo = repo
        self.settings = settings or RateLimitSettings()
        self.clock = clock
        self.rng = rng
        self.fallback = fallback or MemoryFallback()

    def rule_for(self, function_name: str) -> RateLimitRule:
        try:
            return self.settings.rules[function_name]
        except KeyError:
            raise ValueError(f"No rate limit rule configured for '{function_name}'") from None

    def check(
        self, client_ip: str, function_name: str, rule: Optional[RateLimitRule] = None,
    ) -> RateLimitResult:
        """Record one request and decide whether it may proceed."""
        rule = rule or self.rule_for(function_name)
        now = self.clock()

        try:
            outcome = self.repo.hit_rate_limit(
                client_ip, function_name, rule.max_requests, rule.window_seconds, now,
            )
        except Exception:
            logger.warning("Rate limit store unavailable for %s", function_name, exc_info=True)
            result = self.fallback.hit(client_ip, function_name, rule, now)
            self._log_event("db_fallback", function_name, client_ip, result, rule.max_requests)
            return result

        count = outcome["request_count"]
        reset_in = max(0.0, outcome["window_end"] - now)
        if outcome["allowed"]:
            result = RateLimitResult(True, max(0, rule.max_requests - count), reset_in, count)
            if count >= rule.max_requests * self.settings.warning_ratio:
                event = "warning"
            else:
                event = "allowed"
        else:
            result = RateLimitResult(False, 0, reset_in, count)
            event = "blocked"

        self._log_event(event, function_name, client_ip, result, rule.max_requests)
        return result

    def cleanup_expired(self) -> int:
        """Delete every window that has already closed. Returns rows removed."""
        now = self.clock()
        # Must not depend on the store, which may be the reason the fallback filled
        self.fallback.purge(now)
        removed = self.repo.cleanup_expired_rate_limits(now)
        if removed:
            logger.info("[RATE_LIMIT_CLEANUP] %s", json.dumps({"removed": removed}))
        return removed

    def maybe_cleanup(self) -> int:
        """Run :meth:`cleanup_expired` with the configured probability.

        Best-effort: a failing purge never fails the request that triggered it.
        """
        if self.rng() >= self.settings.cleanup_probability:
            return 0
        try:
            return self.cleanup_expired()
        except Exception:
            logger.warning("[RATE_LIMIT_CLEANUP_ERROR] Cleanup failed", exc_info=True)
            return 0

    def _log_event(
        self, event: str, function_name: str, client_ip: str,
        result: RateLimitResult, limit: int,
    ) -> None:
        entry = json.dumps({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "function": function_name,
            "eventType": event,
            "clientIP": client_ip,
            "requestCount": result.count,
            "remaining": result.remaining,
            "windowResetInSeconds": math.ceil(result.reset_in),
            "limit": limit,
        })
        if event == "blocked":
            logger.error("[RATE_LIMIT_BLOCKED] %s", entry)
        elif event == "warning":
            logger.warning("[RATE_LIMIT_WARNING] %s", entry)
        elif event == "db_fallback":
            logger.warning("[RATE_LIMIT_DB_FALLBACK] %s", entry)
        elif result.count % self.settings.log_sample_every == 0:
            logger.info("[RATE_LIMIT_INFO] %s", entry)


def rate_limit_headers(result: RateLimitResult, limit: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_in)),
    }


def retry_after(result: RateLimitResult) -> int:
    """Whole seconds a blocked client should wait."""
    return max(1, math.ceil(result.reset_in))
