"""
Durable per-user generation quota.

Counts live in the generation_counters table keyed by (user_id, window_start),
so limits survive restarts and are shared by every process using the store.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from ingestion.models import CamelModel
from generation.plan_policy import LimitWindow, PlanPolicy, format_limit_label
from utils.logger import setup_logger

logger = setup_logger(__name__)


class RateLimitExceeded(Exception):
    """The user's plan quota for the current window is used up."""

    def __init__(self, limit: int, window: LimitWindow, reset_at: datetime):
        self.limit = limit
        self.window = window
        self.reset_at = reset_at
        unit = format_limit_label(limit, window)
        super().__init__(
            f"Generation limit reached ({unit}). Your limit resets at {to_iso(reset_at)}."
        )


class LimitState(CamelModel):
    plan: str
    limit: int
    window: LimitWindow
    label: str
    used: int
    remaining: int
    window_start: str
    reset_at: str


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def window_bounds(window: LimitWindow, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """UTC start of the window containing `now`, and the start of the next one.

    Weekly windows start on ISO Monday.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if window == LimitWindow.DAILY:
        return day_start, day_start + timedelta(days=1)
    if window == LimitWindow.WEEKLY:
        start = day_start - timedelta(days=day_start.weekday())
        return start, start + timedelta(days=7)

    start = day_start.replace(day=1)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


class GenerationRateLimiter:
    """Checks and consumes generation quota against the record store."""

    def __init__(self, db):
        """
        Args:
            db: Database instance (storage.database.Database)
        """
        self.db = db

    def _state(self, policy: PlanPolicy, used: int, start: datetime, reset: datetime) -> LimitState:
        return LimitState(
            plan=policy.plan,
            limit=policy.limit,
            window=policy.window,
            label=format_limit_label(policy.limit, policy.window),
            used=used,
            remaining=max(0, policy.limit - used),
            window_start=to_iso(start),
            reset_at=to_iso(reset),
        )

    def usage(self, user_id: str, policy: PlanPolicy, now: Optional[datetime] = None) -> LimitState:
        """Read-only view of the user's quota in the current window."""
        start, reset = window_bounds(policy.window, now)
        used = self.db.get_generation_count(user_id, to_iso(start))
        return self._state(policy, used, start, reset)

    def consume(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        policy: PlanPolicy,
        now: Optional[datetime] = None
    ) -> LimitState:
        """Count one generation inside the caller's open transaction.

        Raises:
            RateLimitExceeded: quota already used up; nothing is written
        """
        start, reset = window_bounds(policy.window, now)
        window_start = to_iso(start)
        used = self.db.get_generation_count(user_id, window_start, conn=conn)
        if used >= policy.limit:
            logger.warning(f"Generation limit reached for user {user_id} ({used}/{policy.limit} {policy.window.value})")
            raise RateLimitExceeded(policy.limit, policy.window, reset)

        used = self.db.increment_generation_count(conn, user_id, window_start)
        return self._state(policy, used, start, reset)
