"""
Cooperative refresh loop.

Runs a refresh coroutine on a fixed interval, or sooner when a change
notification arrives. One refresh at a time; a slow refresh is simply
superseded by the next one.
"""

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional

from redis.exceptions import RedisError

from clinic_queue.services.notifications.visit_change_notifier import VisitChangeNotifier

logger = logging.getLogger(__name__)


class QueueRefresher:

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Any]],
        interval: float = 10.0,
        notifier: Optional[VisitChangeNotifier] = None,
    ):
        self._refresh = refresh
        self.interval = interval
        self.notifier = notifier
        self._wake = asyncio.Event()
        self._running = False
        self.iterations = 0

    def notify(self) -> None:
        """Request a refresh without waiting for the next tick."""
        self._wake.set()

    def stop(self) -> None:
        self._running = False
        self._wake.set()

    async def run_once(self) -> None:
        try:
            await self._refresh()
        except Exception:
            # Keep the loop alive; the next tick retries
            logger.exception("Queue refresh failed")
        finally:
            self.iterations += 1

    async def _listen(self) -> None:
        try:
            async for event in self.notifier.listen():
                logger.debug("Change event %s", event)
                self._wake.set()
        except RedisError as e:
            logger.error("Change notifications unavailable, polling only: %s", e)

    async def run(self) -> None:
        self._running = True
        listener = None
        if self.notifier is not None and self.notifier.enabled:
            listener = asyncio.create_task(self._listen())
        try:
            while self._running:
                await self.run_once()
                if not self._running:
                    break
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
                self._wake.clear()
        finally:
            if listener is not None:
                listener.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await listener
