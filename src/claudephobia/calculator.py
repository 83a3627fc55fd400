"""Pacing projection and reset-countdown math for usage windows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import RateLimitWindow

SESSION_WINDOW = timedelta(hours=5)
MIN_ELAPSED_FRACTION = 0.1  # ignore the first 30 minutes of a session
MIN_UTILIZATION = 0.1


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def projected_usage(session: Optional[RateLimitWindow],
                    now: datetime | None = None) -> Optional[float]:
    """Linear projection of session utilization at reset time.

    Returns None when there is no session window or too little of it has
    elapsed (or been used) for a projection to mean anything.
    """
    if session is None:
        return None

    window = SESSION_WINDOW.total_seconds()
    window_start = session.resets_at - SESSION_WINDOW
    elapsed = (_now(now) - window_start).total_seconds()

    # Early in a window a few percent extrapolates to huge multiples
    if elapsed <= window * MIN_ELAPSED_FRACTION or session.utilization <= MIN_UTILIZATION:
        return None

    return session.utilization * (window / elapsed)


def is_pacing_unsustainable(session: Optional[RateLimitWindow],
                            now: datetime | None = None) -> bool:
    """True if the 5-hour session is on track to pass 100% before it resets."""
    projected = projected_usage(session, now)
    return projected is not None and projected > 1.0


def format_reset_time(resets_at: datetime, now: datetime | None = None) -> str:
    """Countdown text such as ``Resets in 2h 14m``."""
    seconds = (resets_at - _now(now)).total_seconds()
    if seconds <= 0:
        return "Resetting..."

    total_minutes = int(seconds) // 60
    hours, minutes = divmod(total_minutes, 60)
    days, rem_hours = divmod(hours, 24)

    if days > 0:
        return f"Resets in {days}d {rem_hours}h"
    if hours > 0:
        return f"Resets in {hours}h {minutes}m"
    return f"Resets in {minutes}m"


def time_ago(then: datetime, now: datetime | None = None) -> str:
    seconds = int((_now(now) - then).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes == 1:
        return "1 min ago"
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours == 1:
        return "1 hr ago"
    return f"{hours} hr ago"
