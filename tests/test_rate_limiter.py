"""Test durable generation quotas."""
from datetime import datetime, timezone

import pytest

from execution.rate_limiter import GenerationRateLimiter, RateLimitExceeded, to_iso, window_bounds
from generation.plan_policy import LimitWindow, get_plan_policy

# Wednesday
NOW = datetime(2026, 10, 14, 15, 30, tzinfo=timezone.utc)


def test_daily_window():
    start, reset = window_bounds(LimitWindow.DAILY, NOW)

    assert to_iso(start) == "2026-10-14T00:00:00Z"
    assert to_iso(reset) == "2026-10-15T00:00:00Z"


def test_weekly_window_starts_monday():
    start, reset = window_bounds(LimitWindow.WEEKLY, NOW)

    assert to_iso(start) == "2026-10-12T00:00:00Z"
    assert to_iso(reset) == "2026-10-19T00:00:00Z"


def test_monthly_window():
    start, reset = window_bounds(LimitWindow.MONTHLY, NOW)

    assert to_iso(start) == "2026-10-01T00:00:00Z"
    assert to_iso(reset) == "2026-11-01T00:00:00Z"


def test_monthly_window_rolls_over_year():
    start, reset = window_bounds(LimitWindow.MONTHLY, datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc))

    assert to_iso(start) == "2026-12-01T00:00:00Z"
    assert to_iso(reset) == "2027-01-01T00:00:00Z"


def test_consume_until_exhausted(db):
    limiter = GenerationRateLimiter(db)
    policy = get_plan_policy("pro")

    with db.transaction() as conn:
        first = limiter.consume(conn, "user-1", policy, NOW)
    with db.transaction() as conn:
        second = limiter.consume(conn, "user-1", policy, NOW)

    assert (first.used, first.remaining) == (1, 1)
    assert (second.used, second.remaining) == (2, 0)

    with pytest.raises(RateLimitExceeded) as exc_info:
        with db.transaction() as conn:
            limiter.consume(conn, "user-1", policy, NOW)

    assert str(exc_info.value) == (
        "Generation limit reached (2/day). Your limit resets at 2026-10-15T00:00:00Z."
    )
    assert limiter.usage("user-1", policy, NOW).used == 2


def test_quota_is_per_user_and_window(db):
    limiter = GenerationRateLimiter(db)
    policy = get_plan_policy("pro")
    for _ in range(2):
        with db.transaction() as conn:
            limiter.consume(conn, "user-1", policy, NOW)

    tomorrow = datetime(2026, 10, 15, 0, 0, 1, tzinfo=timezone.utc)
    assert limiter.usage("user-1", policy, tomorrow).remaining == 2
    assert limiter.usage("user-2", policy, NOW).remaining == 2


def test_usage_view(db):
    state = GenerationRateLimiter(db).usage("user-1", get_plan_policy("free"), NOW)
    dumped = state.model_dump(by_alias=True, mode="json")

    assert dumped["label"] == "4/month"
    assert dumped["remaining"] == 4
    assert dumped["resetAt"] == "2026-11-01T00:00:00Z"
