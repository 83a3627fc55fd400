"""Known Claude usage windows and rate-limit tier labels."""

from __future__ import annotations

from .models import WindowKind

# ── Usage Windows ────────────────────────────────────────────────────────────
# Keys match the top-level objects of /api/organizations/{id}/usage. Order is
# the order the dashboard and the export use.

WINDOWS: dict[str, WindowKind] = {
    "five_hour": WindowKind("five_hour", "5-hour session", notify=True),
    "seven_day": WindowKind("seven_day", "7-day weekly", notify=True),
    "seven_day_opus": WindowKind("seven_day_opus", "Opus weekly", notify=True),
    "seven_day_sonnet": WindowKind("seven_day_sonnet", "Sonnet weekly", notify=True),
    "seven_day_oauth_apps": WindowKind("seven_day_oauth_apps", "OAuth apps weekly"),
    "seven_day_cowork": WindowKind("seven_day_cowork", "Cowork weekly"),
    "extra_usage": WindowKind("extra_usage", "Extra usage"),
}

SESSION_KEY = "five_hour"
WEEKLY_KEY = "seven_day"


def get_window(key: str) -> WindowKind:
    """Get a window by API key, raising KeyError if not found."""
    return WINDOWS[key]


def notifying_windows() -> list[WindowKind]:
    """Windows that take part in threshold and reset notifications."""
    return [w for w in WINDOWS.values() if w.notify]


def tier_display_name(tier: str) -> str:
    """Human-friendly form of a rate-limit tier such as ``default_claude_ai``."""
    return (
        tier.replace("_", " ")
        .replace("claude ai", "Claude AI")
        .title()
        .replace("Claude Ai", "Claude AI")
    )
