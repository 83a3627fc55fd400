"""JSON export of the current usage snapshot."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path

from .models import RateLimitWindow, UsageSnapshot
from .notifications import APP_NAME


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC at second precision, e.g. ``2026-02-10T12:00:00Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _window_entry(window: RateLimitWindow) -> dict:
    return {
        "utilization": window.utilization,
        "percent": window.percent,
        "resets_at": format_timestamp(window.resets_at),
    }


def build_export(snapshot: UsageSnapshot | None, now: datetime | None = None) -> dict:
    """Export dict: metadata plus one entry per window the snapshot has."""
    data: dict = {
        "exported_at": format_timestamp(now or datetime.now(timezone.utc)),
        "app": APP_NAME,
    }
    if snapshot is None:
        return data
    if snapshot.rate_limit_tier:
        data["rate_limit_tier"] = snapshot.rate_limit_tier
    for key, window in snapshot.windows().items():
        data[key] = _window_entry(window)
    return data


def export_json(snapshot: UsageSnapshot | None, now: datetime | None = None) -> str:
    return json.dumps(build_export(snapshot, now), indent=2, sort_keys=True)


def default_export_filename(day: date | None = None) -> str:
    day = day or date.today()
    return f"claudephobia-usage-{day.isoformat()}.json"


def write_export(path: str | Path, snapshot: UsageSnapshot | None,
                 now: datetime | None = None) -> Path:
    """Write the export to ``path`` and return it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_json(snapshot, now) + "\n", encoding="utf-8")
    return path
