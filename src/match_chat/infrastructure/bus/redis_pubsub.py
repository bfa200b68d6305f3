"""Redis Pub/Sub change feed: one channel per match."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from match_chat.application.exceptions import SubscriptionFailedError
from match_chat.application.ports.notifier import OnInsert
from match_chat.domain.entities.message import Message
from match_chat.infrastructure.bus.serializer import (
    MESSAGE_CREATED,
    deserialize_event,
    message_from_dict,
    message_to_dict,
    serialize_event,
)

logger = logging.getLogger(__name__)


def channel_name(prefix: str, match_id: str) -> str:
    return f"{prefix}:{match_id}"


class RedisInsertPublisher:
    """Implements application.ports.notifier.InsertPublisher."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "messages") -> None:
        self._redis = redis
        self._prefix = prefix

    async def publish(self, message: Message) -> None:
        raw = serialize_event(MESSAGE_CREATED, message_to_dict(message))
        await self._redis.publish(channel_name(self._prefix, message.match_id), raw)


class RedisSubscription:
    """Handle for one match channel and the task listening on it."""

    def __init__(self, match_id: str, channel: str, pubsub: aioredis.client.PubSub) -> None:
        self.match_id = match_id
        self.channel = channel
        self._pubsub = pubsub
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    def start(self, on_insert: OnInsert) -> None:
        self._task = asyncio.create_task(
            self._listen(on_insert), name=f"redis-match-feed-{self.match_id}",
        )

    async def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()

    async def _listen(self, on_insert: OnInsert) -> None:
        async for raw in self._pubsub.listen():
            if raw["type"] != "message":
                continue
            try:
                event_type, data = deserialize_event(raw["data"])
                if event_type != MESSAGE_CREATED:
                    continue
                on_insert(message_from_dict(data))
            except Exception:
                logger.exception("Error processing insert on channel=%s", self.channel)


class RedisChangeNotifier:
    """Implements application.ports.notifier.ChangeNotifier."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "messages") -> None:
        self._redis = redis
        self._prefix = prefix

    async def subscribe(self, match_id: str, on_insert: OnInsert) -> RedisSubscription:
        channel = channel_name(self._prefix, match_id)
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
        except (RedisError, OSError) as exc:
            await pubsub.aclose()
            raise SubscriptionFailedError(f"Could not subscribe to {channel}: {exc}") from exc
        subscription = RedisSubscription(match_id, channel, pubsub)
        subscription.start(on_insert)
        logger.info("Redis feed subscribed channel=%s", channel)
        return subscription

    async def unsubscribe(self, handle: RedisSubscription) -> None:
        await handle.stop()
        logger.info("Redis feed unsubscribed channel=%s", handle.channel)
