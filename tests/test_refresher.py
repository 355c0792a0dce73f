"""
Refresh loop tests.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from clinic_queue.services.queue import QueueRefresher


class FakeNotifier:
    enabled = True

    def __init__(self):
        self.events = asyncio.Queue()

    async def listen(self):
        while True:
            yield await self.events.get()


class TestQueueRefresher:

    @pytest.mark.asyncio
    async def test_ticks_on_interval(self):
        calls = []

        async def refresh():
            calls.append(1)
            if len(calls) == 3:
                refresher.stop()

        refresher = QueueRefresher(refresh, interval=0.01)
        await asyncio.wait_for(refresher.run(), timeout=2)

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_loop(self):
        refresh = AsyncMock(side_effect=[RuntimeError("db down"), None, None])
        refresher = QueueRefresher(refresh, interval=0.01)

        async def stop_later():
            while refresher.iterations < 3:
                await asyncio.sleep(0.005)
            refresher.stop()

        await asyncio.wait_for(asyncio.gather(refresher.run(), stop_later()), timeout=2)

        assert refresh.await_count >= 3

    @pytest.mark.asyncio
    async def test_change_event_wakes_before_interval(self):
        notifier = FakeNotifier()
        refreshed = asyncio.Event()
        count = 0

        async def refresh():
            nonlocal count
            count += 1
            if count == 2:
                refreshed.set()

        refresher = QueueRefresher(refresh, interval=60, notifier=notifier)
        task = asyncio.create_task(refresher.run())
        await asyncio.sleep(0.05)
        await notifier.events.put({"visit_id": "x", "event": "room_started"})

        await asyncio.wait_for(refreshed.wait(), timeout=2)
        refresher.stop()
        await asyncio.wait_for(task, timeout=2)

        assert count == 2

    @pytest.mark.asyncio
    async def test_notify_triggers_refresh(self):
        count = 0

        async def refresh():
            nonlocal count
            count += 1

        refresher = QueueRefresher(refresh, interval=60)
        task = asyncio.create_task(refresher.run())
        await asyncio.sleep(0.02)
        refresher.notify()
        await asyncio.sleep(0.02)
        refresher.stop()
        await asyncio.wait_for(task, timeout=2)

        assert count == 2
