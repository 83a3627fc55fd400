"""Periodic refresh loop on top of asyncio."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

RefreshFn = Callable[[], Awaitable[object]]
UpdateFn = Callable[[], None]


class RefreshScheduler:
    """Runs ``refresh`` every ``interval`` seconds, one tick at a time.

    Ticks (timed or manual) share a lock, so a slow fetch delays the next
    tick instead of overlapping it. A manual ``refresh_now`` does not move
    the timer.
    """

    def __init__(self, refresh: RefreshFn, interval: float,
                 on_update: UpdateFn | None = None):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._refresh = refresh
        self._on_update = on_update
        self.interval = interval
        self.ticks = 0
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._manual: set[asyncio.Task] = set()
        self._reschedule = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, immediate: bool = True) -> None:
        """Start the timer. With ``immediate`` the first refresh happens right away."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(immediate))

    async def stop(self) -> None:
        """Cancel the timer and any pending manual refreshes, and wait for them."""
        tasks = list(self._manual)
        if self._task is not None:
            tasks.append(self._task)
        self._task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def set_interval(self, interval: float) -> None:
        """Change the interval, restarting the timer from now."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        if interval == self.interval:
            return
        logger.debug("Refresh interval changed to %ss, restarting timer", interval)
        self.interval = interval
        # wakes the sleeping loop; an in-flight tick is left alone
        self._reschedule.set()

    async def refresh_now(self) -> None:
        """Out-of-band tick."""
        await self._tick()

    def request_refresh(self) -> asyncio.Task:
        """Schedule ``refresh_now`` from synchronous code such as a signal handler."""
        task = asyncio.get_running_loop().create_task(self.refresh_now())
        self._manual.add(task)
        task.add_done_callback(self._manual.discard)
        return task

    async def _run(self, immediate: bool) -> None:
        if immediate:
            await self._tick()
        while True:
            if await self._sleep():
                await self._tick()

    async def _sleep(self) -> bool:
        """Wait one interval. False if the timer was rescheduled meanwhile."""
        self._reschedule.clear()
        try:
            await asyncio.wait_for(self._reschedule.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return True
        return False

    async def _tick(self) -> None:
        async with self._lock:
            self.ticks += 1
            try:
                await self._refresh()
            except Exception:
                # keep the timer alive; the next tick tries again
                logger.exception("Refresh tick failed")
            if self._on_update is not None:
                self._on_update()
