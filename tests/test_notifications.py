"""Tests for the notification state machine and manager."""

from datetime import datetime, timezone
from io import StringIO
from unittest.mock import patch

from rich.console import Console

from claudephobia.models import EngineConfig, RateLimitWindow, UsageSnapshot
from claudephobia.notifications import (
    Alert,
    ConsoleSink,
    DesktopSink,
    NotificationManager,
    NotificationState,
    Severity,
    evaluate,
)

LABEL = "5-hour session"
RESET = datetime(2026, 2, 10, 17, 0, tzinfo=timezone.utc)


class RecordingSink:
    def __init__(self):
        self.sent = []

    def send(self, title, body):
        self.sent.append((title, body))


def _eval(state, pct, warning=0.75, critical=0.90, notify_on_reset=True, label=LABEL):
    return evaluate(state, label, pct, warning, critical, notify_on_reset)


def _severities(state, values, **kwargs):
    out = []
    for v in values:
        alert = _eval(state, v, **kwargs)
        out.append(alert.severity if alert else None)
    return out


class TestThresholds:
    def test_below_warning(self):
        assert _eval(NotificationState(), 0.5) is None

    def test_warning_once(self):
        state = NotificationState()
        assert _severities(state, [0.8, 0.8, 0.85]) == [Severity.WARNING, None, None]

    def test_critical_once(self):
        state = NotificationState()
        seq = _severities(state, [0.95] * 5)
        assert seq.count(Severity.CRITICAL) == 1
        assert seq[0] is Severity.CRITICAL

    def test_warning_follows_on_next_cycle(self):
        # critical only suppresses the warning in the cycle it fires
        state = NotificationState()
        assert _severities(state, [0.95, 0.95, 0.95]) == [Severity.CRITICAL, Severity.WARNING, None]

    def test_critical_suppresses_warning(self):
        state = NotificationState()
        alert = _eval(state, 0.95)
        assert alert.severity is Severity.CRITICAL
        assert not state.has_fired(LABEL, Severity.WARNING)

    def test_warning_then_critical(self):
        state = NotificationState()
        assert _severities(state, [0.8, 0.92]) == [Severity.WARNING, Severity.CRITICAL]

    def test_warning_still_fires_after_critical_drop(self):
        # critical was hit first, then usage sits between the thresholds
        state = NotificationState()
        assert _severities(state, [0.95, 0.8]) == [Severity.CRITICAL, Severity.WARNING]

    def test_critical_rearms_below_warning(self):
        state = NotificationState()
        seq = _severities(state, [0.95, 0.95, 0.95, 0.70, 0.95])
        assert seq[:3].count(Severity.CRITICAL) == 1
        assert seq[3] is None
        assert seq[4] is Severity.CRITICAL

    def test_no_rearm_between_thresholds(self):
        state = NotificationState()
        assert _severities(state, [0.95, 0.76, 0.95]) == [Severity.CRITICAL, Severity.WARNING, None]

    def test_labels_are_independent(self):
        state = NotificationState()
        assert _eval(state, 0.95, label="5-hour session").severity is Severity.CRITICAL
        assert _eval(state, 0.95, label="7-day weekly").severity is Severity.CRITICAL

    def test_equal_thresholds_fire_critical_first(self):
        state = NotificationState()
        seq = _severities(state, [0.8, 0.8, 0.8], warning=0.8, critical=0.8)
        assert seq == [Severity.CRITICAL, Severity.WARNING, None]

    def test_inverted_thresholds_are_deterministic(self):
        # warning above critical: usage between them never counts as "below
        # warning" for long, so critical re-fires every cycle
        state = NotificationState()
        assert _severities(state, [0.85, 0.85], warning=0.9, critical=0.8) == [
            Severity.CRITICAL, Severity.CRITICAL,
        ]


class TestReset:
    def test_reset_once(self):
        state = NotificationState()
        assert _severities(state, [0.30, 0.02, 0.02]) == [None, Severity.RESET, None]

    def test_reset_rearms_above_five_percent(self):
        state = NotificationState()
        seq = [0.30, 0.02, 0.06, 0.01]
        # 0.06 -> 0.01 is not a qualifying drop (previous below 0.20)
        assert _severities(state, seq) == [None, Severity.RESET, None, None]
        assert not state.has_fired(LABEL, Severity.RESET)
        assert _severities(state, [0.25, 0.01]) == [None, Severity.RESET]

    def test_no_reset_without_history(self):
        assert _eval(NotificationState(), 0.01) is None

    def test_small_drop_is_not_reset(self):
        state = NotificationState()
        assert _severities(state, [0.15, 0.01]) == [None, None]

    def test_disabled(self):
        state = NotificationState()
        assert _severities(state, [0.5, 0.01], notify_on_reset=False) == [None, None]

    def test_history_recorded_when_disabled(self):
        state = NotificationState()
        _eval(state, 0.5, notify_on_reset=False)
        assert state.last_percent[LABEL] == 0.5

    def test_reset_after_critical(self):
        state = NotificationState()
        assert _severities(state, [0.95, 0.0]) == [Severity.CRITICAL, Severity.RESET]
        assert not state.has_fired(LABEL, Severity.CRITICAL)

    def test_threshold_alert_takes_priority_over_reset(self):
        # only reachable with thresholds below 5%; one alert per call
        state = NotificationState()
        _eval(state, 0.30, warning=0.01, critical=0.02)
        state.fired.clear()
        alert = _eval(state, 0.03, warning=0.01, critical=0.02)
        assert alert.severity is Severity.CRITICAL
        assert not state.has_fired(LABEL, Severity.RESET)


class TestAlertText:
    def test_critical(self):
        a = Alert(Severity.CRITICAL, "7-day weekly", 0.93)
        assert a.title == "Claudephobia - Critical"
        assert a.body == "7-day weekly at 93%. You're about to hit your limit."

    def test_warning(self):
        a = Alert(Severity.WARNING, "Opus weekly", 0.76)
        assert a.title == "Claudephobia - Warning"
        assert "Consider slowing down" in a.body

    def test_reset(self):
        a = Alert(Severity.RESET, "5-hour session", 0.01)
        assert a.title == "Claudephobia - Restored"
        assert a.body == "5-hour session has reset. You're good to go."


class TestNotificationManager:
    def _snapshot(self, **pcts):
        return UsageSnapshot(**{
            k: RateLimitWindow(utilization=v, resets_at=RESET) for k, v in pcts.items()
        })

    def test_check_snapshot_dispatches(self):
        sink = RecordingSink()
        mgr = NotificationManager(sink)
        alerts = mgr.check_snapshot(self._snapshot(five_hour=0.95, seven_day=0.8), EngineConfig())
        assert [a.label for a in alerts] == ["5-hour session", "7-day weekly"]
        assert [t for t, _ in sink.sent] == ["Claudephobia - Critical", "Claudephobia - Warning"]

    def test_absent_windows_not_evaluated(self):
        mgr = NotificationManager(RecordingSink())
        mgr.check_snapshot(self._snapshot(seven_day=0.3), EngineConfig())
        assert list(mgr.state.last_percent) == ["7-day weekly"]

    def test_non_notifying_windows_ignored(self):
        sink = RecordingSink()
        mgr = NotificationManager(sink)
        mgr.check_snapshot(self._snapshot(extra_usage=0.99, seven_day_cowork=0.99), EngineConfig())
        assert sink.sent == []

    def test_dedup_across_snapshots(self):
        sink = RecordingSink()
        mgr = NotificationManager(sink)
        for _ in range(3):
            mgr.check_snapshot(self._snapshot(seven_day_opus=0.8), EngineConfig())
        assert len(sink.sent) == 1

    def test_uses_config_thresholds(self):
        sink = RecordingSink()
        mgr = NotificationManager(sink)
        config = EngineConfig(warning_threshold=0.5, critical_threshold=0.6)
        mgr.check_snapshot(self._snapshot(five_hour=0.55), config)
        assert sink.sent[0][0] == "Claudephobia - Warning"

    def test_reset_clears_state(self):
        sink = RecordingSink()
        mgr = NotificationManager(sink)
        mgr.check_snapshot(self._snapshot(five_hour=0.95), EngineConfig())
        mgr.reset()
        assert mgr.state.fired == set()
        assert mgr.state.last_percent == {}
        mgr.check_snapshot(self._snapshot(five_hour=0.95), EngineConfig())
        assert len(sink.sent) == 2

    def test_send_test(self):
        sink = RecordingSink()
        NotificationManager(sink).send_test()
        assert sink.sent == [("Claudephobia - Test", "Notifications are working.")]


class TestSinks:
    def test_console_sink(self):
        c = Console(file=StringIO(), width=120)
        ConsoleSink(c).send("Claudephobia - Warning", "7-day weekly at 80%.")
        out = c.file.getvalue()
        assert "Claudephobia - Warning" in out
        assert "7-day weekly at 80%." in out

    def test_desktop_sink_calls_plyer(self):
        with patch("claudephobia.notifications.notification") as notification:
            DesktopSink().send("Title", "Body")
        notification.notify.assert_called_once()
        kwargs = notification.notify.call_args.kwargs
        assert kwargs["title"] == "Title"
        assert kwargs["message"] == "Body"

    def test_desktop_sink_swallows_backend_errors(self):
        with patch("claudephobia.notifications.notification") as notification:
            notification.notify.side_effect = NotImplementedError("no backend")
            DesktopSink().send("Title", "Body")  # must not raise
