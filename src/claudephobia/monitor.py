"""Usage monitor: the single owner of mutable engine state."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from .calculator import is_pacing_unsustainable
from .client import ClaudeUsageClient, UsageAPIError
from .models import EngineConfig, UsageSnapshot
from .notifications import NotificationManager, NotificationSink

logger = logging.getLogger(__name__)

EMPTY_SNAPSHOT_MESSAGE = "Could not read usage data. Session key may be expired."
NOT_CONFIGURED_MESSAGE = "No session key configured. Run 'claudephobia setup'."


class UsageMonitor:
    """Applies fetched snapshots and keeps what the dashboard shows.

    All mutation goes through ``refresh``, ``apply_snapshot``,
    ``apply_config`` and ``reset``, which are only ever called from the
    event loop that owns the monitor.
    """

    def __init__(self, client: Optional[ClaudeUsageClient], sink: NotificationSink,
                 config: EngineConfig | None = None):
        self.client = client
        self.config = config or EngineConfig()
        self.notifications = NotificationManager(sink)

        self.snapshot: Optional[UsageSnapshot] = None
        self.last_updated: Optional[datetime] = None
        self.error_message: Optional[str] = None
        self.is_loading = False
        self.is_pacing_warning = False

    async def refresh(self) -> bool:
        """Fetch and apply a new snapshot. Returns False if the fetch failed.

        On failure the previous snapshot stays in place and only
        ``error_message`` changes.
        """
        if self.client is None:
            self.error_message = NOT_CONFIGURED_MESSAGE
            return False

        self.is_loading = True
        try:
            snapshot = await self.client.fetch()
        except UsageAPIError as e:
            logger.warning("Usage refresh failed: %s", e)
            self.error_message = e.user_message
            return False
        finally:
            self.is_loading = False

        self.apply_snapshot(snapshot)
        return True

    def apply_snapshot(self, snapshot: UsageSnapshot, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        self.snapshot = snapshot
        self.last_updated = now
        self.is_pacing_warning = is_pacing_unsustainable(snapshot.five_hour, now)

        if self.config.notifications_enabled:
            self.notifications.check_snapshot(snapshot, self.config)

        self.error_message = EMPTY_SNAPSHOT_MESSAGE if snapshot.is_empty else None

    def apply_config(self, config: EngineConfig) -> None:
        """Install new settings, re-arming notifications when their meaning changed."""
        old = self.config
        self.config = config
        if (config.warning_threshold != old.warning_threshold
                or config.critical_threshold != old.critical_threshold
                or (old.notifications_enabled and not config.notifications_enabled)):
            logger.debug("Notification settings changed, clearing notification state")
            self.notifications.reset()

    def update_session_key(self, session_key: str) -> None:
        if self.client is None:
            self.client = ClaudeUsageClient(session_key)
        else:
            self.client.session_key = session_key
        self.error_message = None

    def reset(self) -> None:
        """Forget everything: client, snapshot, errors and notification flags."""
        self.client = None
        self.snapshot = None
        self.last_updated = None
        self.error_message = None
        self.is_loading = False
        self.is_pacing_warning = False
        self.notifications.reset()
