"""Rich terminal dashboard for Claude usage windows."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .calculator import format_reset_time, projected_usage, time_ago
from .models import EngineConfig, RateLimitWindow, UsageSnapshot
from .monitor import UsageMonitor
from .windows import SESSION_KEY, WEEKLY_KEY, get_window, tier_display_name

console = Console()


def _color(fraction: float) -> str:
    return "green" if fraction < 0.7 else "yellow" if fraction < 0.9 else "red"


def _bar(fraction: float, width: int = 30) -> str:
    color = _color(fraction)
    filled = int(width * min(max(fraction, 0.0), 1.0))
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}]"


def title_text(snapshot: UsageSnapshot | None, mode: str = "bars") -> str:
    """Compact session/weekly summary, as shown in a status bar."""
    if snapshot is None:
        return "[dim]–[/dim]"
    session = snapshot.get(SESSION_KEY)
    weekly = snapshot.get(WEEKLY_KEY)

    def pct(w: RateLimitWindow | None) -> str:
        if w is None:
            return "–"
        return f"[{_color(w.utilization)}]{w.percent}%[/{_color(w.utilization)}]"

    if mode == "text":
        return f"{pct(session)} · {pct(weekly)}"
    if mode == "compact":
        return f"{pct(session)}/{pct(weekly)}"
    parts = []
    if session is not None:
        parts.append(f"S {_bar(session.utilization, 8)}")
    if weekly is not None:
        parts.append(f"W {_bar(weekly.utilization, 8)}")
    return " ".join(parts) or "[dim]–[/dim]"


def build_dashboard(monitor: UsageMonitor, now: datetime | None = None) -> Panel:
    """Build the dashboard panel for the monitor's current state."""
    now = now or datetime.now(timezone.utc)
    snapshot = monitor.snapshot
    rows: list = []

    if snapshot is not None and snapshot.rate_limit_tier:
        rows.append(Text.from_markup(f"[bold]Plan:[/bold] {tier_display_name(snapshot.rate_limit_tier)}"))
        rows.append(Text(""))

    if snapshot is not None and not snapshot.is_empty:
        rows.append(_windows_table(snapshot, now))

    if monitor.is_pacing_warning and snapshot is not None:
        projected = projected_usage(snapshot.five_hour, now) or 0.0
        rows.append(Text(""))
        rows.append(Text.from_markup(
            f"[bold red]🔥 Pacing:[/bold red] on track for {projected * 100:.0f}% "
            f"of the session limit before it resets"
        ))

    if monitor.error_message:
        rows.append(Text(""))
        rows.append(Text.from_markup(f"[bold red]⚠ {monitor.error_message}[/bold red]"))

    footer = "Not updated yet"
    if monitor.is_loading:
        footer = "Refreshing..."
    elif monitor.last_updated is not None:
        footer = f"Updated {time_ago(monitor.last_updated, now)}"
    rows.append(Text(""))
    rows.append(Text.from_markup(f"[dim]{footer}[/dim]"))

    return Panel(
        Group(*rows),
        title="[bold cyan]📊 Claude Usage[/bold cyan]",
        border_style="cyan",
    )


def _windows_table(snapshot: UsageSnapshot, now: datetime) -> Table:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Window", style="bold")
    table.add_column("Bar", min_width=30)
    table.add_column("Used", justify="right")
    table.add_column("Reset", style="dim")

    for key, window in snapshot.windows().items():
        table.add_row(
            get_window(key).label,
            _bar(window.utilization),
            f"[{_color(window.utilization)}]{window.percent}%[/{_color(window.utilization)}]",
            format_reset_time(window.resets_at, now),
        )
    return table


def render_dashboard(monitor: UsageMonitor, now: datetime | None = None) -> None:
    """Render the full dashboard."""
    console.print()
    console.print(build_dashboard(monitor, now))
    console.print()


def render_status_line(monitor: UsageMonitor, now: datetime | None = None) -> None:
    """Render a single-line status summary."""
    now = now or datetime.now(timezone.utc)
    snapshot = monitor.snapshot
    parts = [f"[bold]Claude[/bold] {title_text(snapshot, monitor.config.display_mode)}"]

    session = snapshot.get(SESSION_KEY) if snapshot else None
    if session is not None:
        parts.append(format_reset_time(session.resets_at, now))
    if monitor.is_pacing_warning:
        parts.append("[red]🔥 pacing[/red]")
    if monitor.error_message:
        parts.append(f"[red]{monitor.error_message}[/red]")

    console.print(" │ ".join(parts))


def render_config(config: EngineConfig) -> None:
    """Show the active settings."""
    table = Table(title="⚙️ Settings", show_lines=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Refresh interval", f"{config.refresh_interval // 60} min")
    table.add_row("Warning threshold", f"{config.warning_threshold * 100:.0f}%")
    table.add_row("Critical threshold", f"{config.critical_threshold * 100:.0f}%")
    table.add_row("Notifications", "on" if config.notifications_enabled else "off")
    table.add_row("Notify on reset", "on" if config.notify_on_reset else "off")
    table.add_row("Display mode", config.display_mode)

    console.print(table)
