"""Data models for Claude usage tracking."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

REFRESH_INTERVALS = (60, 300, 600)
DISPLAY_MODES = ("bars", "text", "compact")


def percent_int(fraction: float) -> int:
    """Whole percent for a 0-1 fraction, truncating (0.999 -> 99)."""
    # round() first so float noise like 0.29 * 100 == 28.999... does not drop a point
    return int(round(fraction * 100, 6))


@dataclass(frozen=True)
class RateLimitWindow:
    """One metered window as reported by the usage API."""

    utilization: float  # 0.0 - 1.0
    resets_at: datetime

    @property
    def percent(self) -> int:
        return percent_int(self.utilization)


@dataclass(frozen=True)
class UsageSnapshot:
    """The normalized result of a single usage fetch.

    A window that is ``None`` does not apply to the account. It is not the
    same thing as zero usage and should not be drawn.
    """

    five_hour: Optional[RateLimitWindow] = None
    seven_day: Optional[RateLimitWindow] = None
    seven_day_opus: Optional[RateLimitWindow] = None
    seven_day_sonnet: Optional[RateLimitWindow] = None
    seven_day_oauth_apps: Optional[RateLimitWindow] = None
    seven_day_cowork: Optional[RateLimitWindow] = None
    extra_usage: Optional[RateLimitWindow] = None
    rate_limit_tier: Optional[str] = None

    def get(self, key: str) -> Optional[RateLimitWindow]:
        value = getattr(self, key, None)
        return value if isinstance(value, RateLimitWindow) else None

    def windows(self) -> dict[str, RateLimitWindow]:
        """Present windows keyed by API key, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if isinstance(getattr(self, f.name), RateLimitWindow)
        }

    @property
    def is_empty(self) -> bool:
        return not self.windows()


@dataclass
class EngineConfig:
    """User-adjustable settings read by the engine."""

    refresh_interval: int = 300  # seconds, one of REFRESH_INTERVALS
    warning_threshold: float = 0.75
    critical_threshold: float = 0.90
    notifications_enabled: bool = True
    notify_on_reset: bool = True
    display_mode: str = "bars"  # one of DISPLAY_MODES


@dataclass
class WindowKind:
    """Static description of a usage window the API can report."""

    key: str  # e.g. "seven_day_opus"
    label: str  # e.g. "Opus weekly"
    notify: bool = False
