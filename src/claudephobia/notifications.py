"""Threshold and reset notifications for usage windows.

Each window label gets three one-shot flags (warning, critical, reset).
A flag is set when its alert fires and re-armed once usage moves back out
of the triggering range, so every crossing produces exactly one alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from plyer import notification
from rich.console import Console

from .models import EngineConfig, UsageSnapshot, percent_int
from .windows import notifying_windows

logger = logging.getLogger(__name__)

APP_NAME = "Claudephobia"
RESET_FROM = 0.20  # usage must have been at least this high...
RESET_TO = 0.05  # ...and drop below this to count as a reset


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"
    RESET = "reset"


@dataclass(frozen=True)
class Alert:
    """A user-facing notification produced by the state machine."""

    severity: Severity
    label: str
    percent_used: float

    @property
    def title(self) -> str:
        heading = {
            Severity.WARNING: "Warning",
            Severity.CRITICAL: "Critical",
            Severity.RESET: "Restored",
        }[self.severity]
        return f"{APP_NAME} - {heading}"

    @property
    def body(self) -> str:
        pct = percent_int(self.percent_used)
        if self.severity is Severity.CRITICAL:
            return f"{self.label} at {pct}%. You're about to hit your limit."
        if self.severity is Severity.WARNING:
            return f"{self.label} at {pct}%. Consider slowing down."
        return f"{self.label} has reset. You're good to go."


@dataclass
class NotificationState:
    """De-duplication flags and last observed usage, keyed by window label."""

    fired: set[tuple[str, Severity]] = field(default_factory=set)
    last_percent: dict[str, float] = field(default_factory=dict)

    def has_fired(self, label: str, severity: Severity) -> bool:
        return (label, severity) in self.fired

    def clear(self) -> None:
        self.fired.clear()
        self.last_percent.clear()


def evaluate(state: NotificationState, label: str, percent_used: float,
             warning_threshold: float, critical_threshold: float,
             notify_on_reset: bool) -> Optional[Alert]:
    """Advance the state machine for one window and return the alert to send, if any.

    Critical wins over warning. The reset check only runs when no threshold
    alert fired, so a call yields at most one alert.
    """
    alert: Optional[Alert] = None
    warn_key = (label, Severity.WARNING)
    crit_key = (label, Severity.CRITICAL)
    reset_key = (label, Severity.RESET)

    if percent_used >= critical_threshold and crit_key not in state.fired:
        state.fired.add(crit_key)
        alert = Alert(Severity.CRITICAL, label, percent_used)
    elif percent_used >= warning_threshold and warn_key not in state.fired:
        state.fired.add(warn_key)
        alert = Alert(Severity.WARNING, label, percent_used)

    previous = state.last_percent.get(label)
    if (alert is None and notify_on_reset and previous is not None
            and previous >= RESET_FROM and percent_used < RESET_TO
            and reset_key not in state.fired):
        state.fired.add(reset_key)
        alert = Alert(Severity.RESET, label, percent_used)

    if percent_used < warning_threshold:
        state.fired.discard(warn_key)
        state.fired.discard(crit_key)

    if percent_used >= RESET_TO:
        state.fired.discard(reset_key)

    state.last_percent[label] = percent_used
    return alert


# ── Sinks ────────────────────────────────────────────────────────────────────

class NotificationSink(Protocol):
    def send(self, title: str, body: str) -> None: ...


class DesktopSink:
    """Native desktop notifications through plyer."""

    def __init__(self, timeout: int = 6):
        self.timeout = timeout

    def send(self, title: str, body: str) -> None:
        try:
            notification.notify(title=title, message=body, app_name=APP_NAME,
                                timeout=self.timeout)
        except Exception as e:
            # delivery is best-effort
            logger.warning("Desktop notification failed: %s", e)


class ConsoleSink:
    """Prints alerts to the terminal."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True)

    def send(self, title: str, body: str) -> None:
        self.console.print(f"[bold yellow]🔔 {title}[/bold yellow]  {body}")


# ── Manager ──────────────────────────────────────────────────────────────────

class NotificationManager:
    """Owns the notification state and dispatches alerts to a sink."""

    def __init__(self, sink: NotificationSink, state: NotificationState | None = None):
        self.sink = sink
        self.state = state or NotificationState()

    def check(self, label: str, percent_used: float, config: EngineConfig) -> Optional[Alert]:
        alert = evaluate(
            self.state, label, percent_used,
            warning_threshold=config.warning_threshold,
            critical_threshold=config.critical_threshold,
            notify_on_reset=config.notify_on_reset,
        )
        if alert is not None:
            logger.info("Notification: %s (%s)", alert.title, alert.body)
            self.sink.send(alert.title, alert.body)
        return alert

    def check_snapshot(self, snapshot: UsageSnapshot, config: EngineConfig) -> list[Alert]:
        """Evaluate every present notifying window of a freshly applied snapshot."""
        alerts = []
        for kind in notifying_windows():
            window = snapshot.get(kind.key)
            if window is None:
                continue
            alert = self.check(kind.label, window.utilization, config)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def send_test(self) -> None:
        self.sink.send(f"{APP_NAME} - Test", "Notifications are working.")

    def reset(self) -> None:
        self.state.clear()
