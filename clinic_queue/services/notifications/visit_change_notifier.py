"""
Redis pub/sub change notifications for the visits table.

Queue screens and the passive display refresh when an event arrives and
fall back to polling when Redis is not configured.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class VisitChangeNotifier:
    """
    Publishes ``{"visit_id", "event"}`` messages on a single channel.

    Events: room_started, room_finished, visit_registered, exams_updated,
    checked_in, check_in_undone.
    """

    def __init__(self, redis: Optional[Redis], channel: str):
        self.redis = redis
        self.channel = channel

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    async def publish(self, visit_id: UUID, event: str) -> None:
        if self.redis is None:
            return
        payload = json.dumps({"visit_id": str(visit_id), "event": event})
        try:
            await self.redis.publish(self.channel, payload)
        except RedisError as e:
            # Listeners still converge through polling
            logger.error("Failed to publish %s for visit %s: %s", event, visit_id, e)

    async def listen(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded change events until the caller stops iterating."""
        if self.redis is None:
            return
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info("Subscribed to %s", self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                data = message.get("data")
                if isinstance(data, bytes):
                    data = data.decode()
                try:
                    yield json.loads(data)
                except (TypeError, ValueError):
                    logger.warning("Ignoring malformed change event: %r", data)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
