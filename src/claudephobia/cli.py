"""CLI entry point for claudephobia."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from .client import ClaudeUsageClient
from .config import (
    config_exists,
    delete_config,
    engine_config_to_dict,
    get_engine_config,
    is_setup_complete,
    load_config,
    save_config,
)
from .dashboard import build_dashboard, render_config, render_dashboard, render_status_line
from .exporter import default_export_filename, export_json, write_export
from .models import DISPLAY_MODES, EngineConfig
from .monitor import UsageMonitor
from .notifications import ConsoleSink, DesktopSink, NotificationManager, NotificationSink
from .onboarding import run_onboarding, validate_session_key
from .scheduler import RefreshScheduler
from .storage import CredentialStore

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Route the package's log records through rich on stderr."""
    pkg_logger = logging.getLogger("claudephobia")
    pkg_logger.handlers[:] = [
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    ]
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    pkg_logger.propagate = False


def _load_monitor(sink: NotificationSink) -> Optional[UsageMonitor]:
    config = load_config()
    if not is_setup_complete(config):
        console.print("[red]Not set up yet. Run 'claudephobia setup' first.[/red]")
        return None
    session_key = CredentialStore().get()
    if session_key is None:
        console.print("[red]No session key stored. Run 'claudephobia update-key'.[/red]")
        return None
    return UsageMonitor(ClaudeUsageClient(session_key), sink, get_engine_config(config))


def _fetch_once() -> Optional[UsageMonitor]:
    monitor = _load_monitor(ConsoleSink(console))
    if monitor is None:
        return None
    with console.status("[cyan]Fetching usage...[/cyan]"):
        asyncio.run(monitor.refresh())
    return monitor


@click.group(invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, verbose: bool):
    """Claudephobia — keep an eye on your Claude usage limits."""
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        ctx.invoke(dashboard)


@main.command()
def setup():
    """Run interactive setup: session key, refresh interval and thresholds."""
    if config_exists() and not click.confirm("Settings already exist. Run setup again?"):
        return
    if run_onboarding() is not None:
        console.print("[dim]Run [bold]claudephobia watch[/bold] to keep monitoring, "
                      "or [bold]claudephobia[/bold] for a one-off dashboard.[/dim]")


@main.command()
def dashboard():
    """Fetch usage once and show the dashboard (default command)."""
    monitor = _fetch_once()
    if monitor is not None:
        render_dashboard(monitor)


@main.command()
def status():
    """Fetch usage once and show a one-line status."""
    monitor = _fetch_once()
    if monitor is not None:
        render_status_line(monitor)


@main.command()
@click.option("--console-alerts", is_flag=True,
              help="Print alerts in the terminal instead of desktop notifications")
def watch(console_alerts: bool):
    """Keep refreshing usage and notify when limits get close."""
    sink = ConsoleSink(console) if console_alerts else DesktopSink()
    monitor = _load_monitor(sink)
    if monitor is None:
        return
    try:
        asyncio.run(_watch(monitor))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


def _read_settings() -> tuple[EngineConfig, Optional[str]]:
    return get_engine_config(load_config()), CredentialStore().get()


async def _reload_settings(monitor: UsageMonitor, scheduler: RefreshScheduler) -> None:
    """Pick up edits made by 'configure' or 'update-key' in another process."""
    engine, session_key = await asyncio.to_thread(_read_settings)
    monitor.apply_config(engine)
    scheduler.set_interval(engine.refresh_interval)

    if session_key and (monitor.client is None or session_key != monitor.client.session_key):
        logger.info("Session key changed, using the new one")
        monitor.update_session_key(session_key)


async def _watch(monitor: UsageMonitor) -> None:
    with Live(build_dashboard(monitor), console=console, refresh_per_second=2) as live:
        scheduler: RefreshScheduler

        async def tick() -> None:
            await _reload_settings(monitor, scheduler)
            await monitor.refresh()

        scheduler = RefreshScheduler(
            tick, monitor.config.refresh_interval,
            on_update=lambda: live.update(build_dashboard(monitor)),
        )

        loop = asyncio.get_running_loop()
        if hasattr(signal, "SIGUSR1"):
            # `kill -USR1 <pid>` forces a refresh
            loop.add_signal_handler(signal.SIGUSR1, scheduler.request_refresh)

        scheduler.start()
        try:
            while True:
                await asyncio.sleep(1)
                live.update(build_dashboard(monitor))
        finally:
            await scheduler.stop()


@main.command()
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              help="File to write (default: claudephobia-usage-<date>.json)")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the JSON instead of writing a file")
def export(output: Optional[Path], to_stdout: bool):
    """Export the current usage snapshot as JSON."""
    monitor = _fetch_once()
    if monitor is None:
        return
    if monitor.snapshot is None or monitor.snapshot.is_empty:
        console.print(f"[red]{monitor.error_message}[/red]")
        return
    if to_stdout:
        click.echo(export_json(monitor.snapshot))
        return
    path = write_export(output or Path(default_export_filename()), monitor.snapshot)
    console.print(f"[green]✓ Exported usage to {path}[/green]")


@main.command()
@click.option("--interval", type=click.Choice(["1", "5", "10"]), help="Refresh interval in minutes")
@click.option("--warning", type=click.IntRange(0, 100), help="Warning threshold in percent")
@click.option("--critical", type=click.IntRange(0, 100), help="Critical threshold in percent")
@click.option("--notifications/--no-notifications", default=None, help="Threshold notifications")
@click.option("--notify-on-reset/--no-notify-on-reset", default=None, help="Notify when a limit resets")
@click.option("--display", type=click.Choice(DISPLAY_MODES), help="Status line format")
def configure(interval: Optional[str], warning: Optional[int], critical: Optional[int],
              notifications: Optional[bool], notify_on_reset: Optional[bool],
              display: Optional[str]):
    """Change refresh and notification settings."""
    config = load_config()
    engine = get_engine_config(config)

    if interval is not None:
        engine.refresh_interval = int(interval) * 60
    if warning is not None:
        engine.warning_threshold = warning / 100
    if critical is not None:
        engine.critical_threshold = critical / 100
    if notifications is not None:
        engine.notifications_enabled = notifications
    if notify_on_reset is not None:
        engine.notify_on_reset = notify_on_reset
    if display is not None:
        engine.display_mode = display

    if engine.warning_threshold >= engine.critical_threshold:
        raise click.BadParameter(
            "warning threshold must be below the critical threshold",
            param_hint="'--warning' / '--critical'",
        )

    config.update(engine_config_to_dict(engine))
    save_config(config)
    console.print("[green]✓ Settings saved[/green]")
    render_config(engine)


@main.command("show-config")
def show_config():
    """Show the current settings."""
    render_config(get_engine_config(load_config()))


@main.command("update-key")
def update_key():
    """Replace the stored claude.ai session key."""
    session_key = click.prompt("New session key", hide_input=True).strip()
    with console.status("[cyan]Checking session key...[/cyan]"):
        error = validate_session_key(session_key)
    if error is not None:
        console.print(f"[red]{error}[/red]")
        return
    CredentialStore().set(session_key)
    config = load_config()
    config["setup_complete"] = True
    save_config(config)
    console.print("[green]✓ Session key updated[/green]")


@main.command("test-notification")
@click.option("--console-alerts", is_flag=True, help="Print the test alert in the terminal")
def test_notification(console_alerts: bool):
    """Send a test notification."""
    sink = ConsoleSink(console) if console_alerts else DesktopSink()
    NotificationManager(sink).send_test()


@main.command()
@click.confirmation_option(prompt="Delete the stored session key and all settings?")
def reset():
    """Forget the session key and all settings."""
    CredentialStore().delete()
    delete_config()
    console.print("[yellow]All Claudephobia data removed.[/yellow]")


if __name__ == "__main__":
    main()
