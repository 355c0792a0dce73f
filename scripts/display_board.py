#!/usr/bin/env python3
"""
Passive "now calling" watcher for the waiting-room screen.

Usage:
    python scripts/display_board.py [--interval 10] [--history 6]

Polls the visits table (and listens on Redis when REDIS_URL is set), logs
every new call and rings the terminal bell once per call.
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from redis.asyncio import Redis

from clinic_queue.config import get_settings
from clinic_queue.contracts.display import DisplayCall
from clinic_queue.db.session import async_session
from clinic_queue.services.display import CallDisplayFeed
from clinic_queue.services.notifications import VisitChangeNotifier
from clinic_queue.services.queue import QueueRefresher, VisitQueueRepository

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def ring(call: DisplayCall) -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()
    logger.info(">>> %s  ->  %s", call.patient_name or "Paciente", call.room_label)


async def run_display(interval: float, history: int) -> None:
    settings = get_settings()
    redis_client = Redis.from_url(settings.redis_url) if settings.redis_url else None
    notifier = VisitChangeNotifier(redis_client, settings.queue_change_channel)
    feed = CallDisplayFeed(history_limit=history, on_new_call=ring)

    async def refresh():
        async with async_session() as session:
            board = await feed.load(VisitQueueRepository(session))
        for call in board.history:
            logger.debug("  #%s %s (%s)", call.position, call.patient_name, call.room_label)

    refresher = QueueRefresher(refresh, interval=interval, notifier=notifier)
    try:
        await refresher.run()
    finally:
        if redis_client is not None:
            await redis_client.aclose()


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Watch the current call for the waiting-room display")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.queue_poll_interval_seconds,
        help=f"Seconds between polls (default: {settings.queue_poll_interval_seconds})"
    )
    parser.add_argument(
        "--history",
        type=int,
        default=settings.display_history_limit,
        help=f"Previous calls to keep (default: {settings.display_history_limit})"
    )
    args = parser.parse_args()

    logger.info("Starting display watcher (interval=%ss, history=%s)", args.interval, args.history)
    try:
        asyncio.run(run_display(args.interval, args.history))
    except KeyboardInterrupt:
        logger.info("Display watcher stopped")


if __name__ == "__main__":
    main()
