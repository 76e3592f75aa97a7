import logging
import sqlite3
import threading

import pytest

from techpulse.core.models import RateLimitRule, RateLimitSettings
from techpulse.ratelimit.limiter import (
    MemoryFallback,
    RateLimiter,
    RateLimitResult,
    rate_limit_headers,
    retry_after,
)

LOGGER = "techpulse.ratelimit.limiter"
RULE = RateLimitRule(max_requests=5, window_seconds=60)


class BrokenRepo:
    def hit_rate_limit(self, *args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    def cleanup_expired_rate_limits(self, now):
        raise sqlite3.OperationalError("database is locked")


def _messages(caplog, tag):
    return [r for r in caplog.records if r.getMessage().startswith(f"[{tag}]")]


def test_allows_exactly_max_requests(limiter):
    results = [limiter.check("1.2.3.4", "test-fn", RULE) for _ in range(5)]
    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [4, 3, 2, 1, 0]
    assert [r.count for r in results] == [1, 2, 3, 4, 5]

    blocked = limiter.check("1.2.3.4", "test-fn", RULE)
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.count == 5


def test_blocked_attempts_are_counted_separately(limiter, repo):
    for _ in range(8):
        limiter.check("1.2.3.4", "test-fn", RULE)
    [record] = repo.get_rate_limits("test-fn")
    assert record["request_count"] == 5
    assert record["blocked_count"] == 3


def test_reset_in_comes_from_the_stored_window(limiter, clock):
    first = limiter.check("1.2.3.4", "test-fn", RULE)
    assert first.reset_in == pytest.approx(60)
    clock.advance(12.5)
    later = limiter.check("1.2.3.4", "test-fn", RULE)
    assert later.reset_in == pytest.approx(47.5)


def test_new_window_after_reset(limiter, clock, repo):
    for _ in range(6):
        limiter.check("1.2.3.4", "test-fn", RULE)
    clock.advance(60)
    fresh = limiter.check("1.2.3.4", "test-fn", RULE)
    assert fresh.allowed
    assert fresh.count == 1
    assert fresh.remaining == 4
    assert len(repo.get_rate_limits("test-fn")) == 2


def test_buckets_are_per_ip_and_function(limiter):
    for _ in range(5):
        limiter.check("1.1.1.1", "fn-a", RULE)
    assert not limiter.check("1.1.1.1", "fn-a", RULE).allowed
    assert limiter.check("2.2.2.2", "fn-a", RULE).allowed
    assert limiter.check("1.1.1.1", "fn-b", RULE).allowed


def test_configured_rules_are_used_by_name(repo, clock):
    settings = RateLimitSettings(rules={"tiny": RateLimitRule(max_requests=1, window_seconds=10)})
    limiter = RateLimiter(repo, settings, clock=clock, rng=lambda: 1.0)
    assert limiter.check("ip", "tiny").allowed
    assert not limiter.check("ip", "tiny").allowed
    with pytest.raises(ValueError):
        limiter.check("ip", "no-such-function")


def test_concurrent_requests_get_distinct_counts(repo, clock):
    limiter = RateLimiter(repo, RateLimitSettings(), clock=clock, rng=lambda: 1.0)
    rule = RateLimitRule(max_requests=50, window_seconds=60)
    counts: list[int] = []
    lock = threading.Lock()
    start = threading.Barrier(12)

    def worker():
        start.wait()
        result = limiter.check("9.9.9.9", "burst", rule)
        with lock:
            counts.append(result.count)

    threads = [threading.Thread(target=worker) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(counts) == list(range(1, 13))
    [record] = repo.get_rate_limits("burst")
    assert record["request_count"] == 12


def test_falls_back_to_memory_when_the_store_fails(clock, caplog):
    caplog.set_level(logging.INFO, logger=LOGGER)
    limiter = RateLimiter(BrokenRepo(), RateLimitSettings(), clock=clock, rng=lambda: 1.0)
    results = [limiter.check("1.2.3.4", "test-fn", RULE) for _ in range(6)]
    assert [r.allowed for r in results] == [True] * 5 + [False]
    assert [r.remaining for r in results] == [4, 3, 2, 1, 0, 0]
    assert len(_messages(caplog, "RATE_LIMIT_DB_FALLBACK")) == 6
    assert len(limiter.fallback) == 1


def test_memory_fallback_rolls_over():
    store = MemoryFallback()
    rule = RateLimitRule(max_requests=1, window_seconds=10)
    assert store.hit("ip", "fn", rule, now=100.0).allowed
    blocked = store.hit("ip", "fn", rule, now=105.0)
    assert not blocked.allowed
    assert blocked.reset_in == pytest.approx(5.0)
    assert store.hit("ip", "fn", rule, now=110.0).count == 1
    assert store.purge(now=200.0) == 1
    assert len(store) == 0


def test_allowed_logging_is_sampled(repo, clock, caplog):
    caplog.set_level(logging.INFO, logger=LOGGER)
    limiter = RateLimiter(repo, RateLimitSettings(log_sample_every=5), clock=clock, rng=lambda: 1.0)
    rule = RateLimitRule(max_requests=100, window_seconds=60)
    for _ in range(12):
        limiter.check("1.2.3.4", "test-fn", rule)
    info = _messages(caplog, "RATE_LIMIT_INFO")
    assert len(info) == 2
    assert '"requestCount": 5' in info[0].getMessage()


def test_warning_and_blocked_events_are_always_logged(limiter, caplog):
    caplog.set_level(logging.INFO, logger=LOGGER)
    for _ in range(7):
        limiter.check("1.2.3.4", "test-fn", RULE)
    # 80% of 5 is 4: requests 4 and 5 warn, 6 and 7 are blocked
    assert len(_messages(caplog, "RATE_LIMIT_WARNING")) == 2
    blocked = _messages(caplog, "RATE_LIMIT_BLOCKED")
    assert len(blocked) == 2
    assert all(r.levelno == logging.ERROR for r in blocked)
    assert '"clientIP": "1.2.3.4"' in blocked[0].getMessage()
    assert '"function": "test-fn"' in blocked[0].getMessage()


def test_cleanup_removes_only_closed_windows(limiter, clock, repo, caplog):
    caplog.set_level(logging.INFO, logger=LOGGER)
    limiter.check("1.1.1.1", "test-fn", RULE)
    clock.advance(120)
    limiter.check("2.2.2.2", "test-fn", RULE)

    assert limiter.cleanup_expired() == 1
    remaining = repo.get_rate_limits("test-fn")
    assert [r["client_ip"] for r in remaining] == ["2.2.2.2"]
    assert len(_messages(caplog, "RATE_LIMIT_CLEANUP")) == 1


def test_cleanup_is_probabilistic(repo, clock):
    rolls = iter([0.5, 0.001])
    limiter = RateLimiter(repo, RateLimitSettings(cleanup_probability=0.01), clock=clock, rng=lambda: next(rolls))
    limiter.check("1.1.1.1", "test-fn", RULE)
    clock.advance(120)

    assert limiter.maybe_cleanup() == 0
    assert len(repo.get_rate_limits()) == 1
    assert limiter.maybe_cleanup() == 1
    assert repo.get_rate_limits() == []


def test_failed_opportunistic_cleanup_is_swallowed(clock):
    limiter = RateLimiter(BrokenRepo(), RateLimitSettings(cleanup_probability=1.0), clock=clock, rng=lambda: 0.0)
    assert limiter.maybe_cleanup() == 0


def test_fallback_windows_are_purged_during_an_outage(clock):
    limiter = RateLimiter(BrokenRepo(), RateLimitSettings(cleanup_probability=1.0), clock=clock, rng=lambda: 0.0)
    for i in range(500):
        limiter.check(f"10.0.{i // 256}.{i % 256}", "test-fn", RULE)
    assert len(limiter.fallback) == 500

    clock.advance(3600)
    assert limiter.maybe_cleanup() == 0
    assert len(limiter.fallback) == 0


def test_fallback_sweeps_closed_windows_when_full():
    fallback = MemoryFallback(sweep_at=3)
    rule = RateLimitRule(max_requests=5, window_seconds=10)
    for ip in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
        fallback.hit(ip, "test-fn", rule, now=100.0)
    assert len(fallback) == 3

    fallback.hit("4.4.4.4", "test-fn", rule, now=120.0)
    assert len(fallback) == 1


def test_headers_and_retry_after():
    result = RateLimitResult(allowed=False, remaining=0, reset_in=12.2, count=60)
    assert rate_limit_headers(result, 60) == {
        "X-RateLimit-Limit": "60",
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": "13",
    }
    assert retry_after(result) == 13
    assert retry_after(RateLimitResult(False, 0, 0.0, 60)) == 1
