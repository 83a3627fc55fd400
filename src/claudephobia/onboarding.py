"""Interactive onboarding flow for first-run setup."""

from __future__ import annotations

import asyncio
from typing import Optional

from rich.console import Console
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from .client import ClaudeUsageClient, UsageAPIError
from .config import build_default_config, save_config
from .models import REFRESH_INTERVALS
from .storage import CredentialStore

console = Console()

MAX_KEY_ATTEMPTS = 3


def run_onboarding(store: CredentialStore | None = None) -> Optional[dict]:
    """Run interactive setup and return the saved config dict.

    Returns None if no working session key was entered.
    """
    store = store or CredentialStore()
    console.print("\n[bold cyan]🚀 Claudephobia — Setup[/bold cyan]\n")

    # Step 1: Session key
    session_key = _ask_session_key()
    if session_key is None:
        console.print("[red]Setup cancelled: no valid session key.[/red]")
        return None

    # Step 2: Refresh interval
    interval = _select_refresh_interval()

    # Step 3: Notification thresholds
    warning, critical = _ask_thresholds()

    config = build_default_config(interval, warning, critical)
    config["setup_complete"] = True
    store.set(session_key)
    save_config(config)

    console.print(f"\n[bold green]✓ Config saved![/bold green]")
    console.print(f"  Refresh every: [cyan]{interval // 60} min[/cyan]")
    console.print(f"  Warn at: [cyan]{warning * 100:.0f}%[/cyan], critical at: [cyan]{critical * 100:.0f}%[/cyan]\n")

    return config


def validate_session_key(session_key: str) -> Optional[str]:
    """Check a key against the API. Returns an error message, or None if it works."""
    try:
        asyncio.run(ClaudeUsageClient(session_key).test_connection())
    except UsageAPIError as e:
        return e.user_message
    return None


def _ask_session_key() -> Optional[str]:
    """Prompt for the claude.ai sessionKey cookie until one validates."""
    console.print("Copy the [bold]sessionKey[/bold] cookie from claude.ai "
                  "(browser dev tools → Application → Cookies).")
    for _ in range(MAX_KEY_ATTEMPTS):
        key = Prompt.ask("Session key", password=True).strip()
        if not key:
            continue
        with console.status("[cyan]Checking session key...[/cyan]"):
            error = validate_session_key(key)
        if error is None:
            console.print("[green]✓ Connected[/green]")
            return key
        console.print(f"[red]{error}[/red]")
    return None


def _select_refresh_interval() -> int:
    """Prompt user to pick how often usage is refreshed."""
    table = Table(title="Refresh Interval", show_lines=True)
    table.add_column("#", style="bold", width=3)
    table.add_column("Every", style="cyan")

    for i, seconds in enumerate(REFRESH_INTERVALS, 1):
        table.add_row(str(i), f"{seconds // 60} min")

    console.print()
    console.print(table)
    choice = IntPrompt.ask(
        "Select refresh interval",
        choices=[str(i) for i in range(1, len(REFRESH_INTERVALS) + 1)],
        default=2,  # 5 min
    )
    return REFRESH_INTERVALS[choice - 1]


def _ask_thresholds() -> tuple[float, float]:
    """Ask for warning and critical thresholds in percent."""
    console.print()
    while True:
        warning = IntPrompt.ask("Warning threshold (%)", default=75)
        critical = IntPrompt.ask("Critical threshold (%)", default=90)
        if 0 <= warning < critical <= 100:
            return warning / 100, critical / 100
        console.print("[yellow]Need 0 ≤ warning < critical ≤ 100.[/yellow]")
