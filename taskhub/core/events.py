import asyncio
import contextlib
import json
import logging
from typing import Any

from redis.asyncio import Redis, RedisError

from taskhub.core.config import Settings
from taskhub.core.websocket import ConnectionManager, user_channel

logger = logging.getLogger(__name__)

TASK_CREATED = "task:created"
TASK_UPDATED = "task:updated"
TASK_DELETED = "task:deleted"
TASK_ASSIGNED = "task:assigned"
NOTIFICATION_NEW = "notification:new"


class EventBroadcaster:
    """
    Fire-and-forget event relay onto the sockets of this process.

    ``channel=None`` means every connected client; otherwise only the sockets
    that joined that channel. Nothing is queued for clients that are offline.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def start(self):
        pass

    async def stop(self):
        pass

    async def publish(self, event: str, data: Any = None, channel: str | None = None):
        await self.deliver({"event": event, "data": data, "channel": channel})

    async def deliver(self, envelope: dict):
        message = {"event": envelope["event"], "data": envelope.get("data")}
        channel = envelope.get("channel")
        if channel is None:
            await self.manager.broadcast(message)
        else:
            await self.manager.send_to_channel(channel, message)

    # ---- task lifecycle ----

    async def task_changed(self, event: str, change) -> None:
        """Broadcast ``event`` for a TaskChange and notify a new assignee."""
        payload = change.task.model_dump(mode="json", by_alias=True)
        await self.publish(event, payload)
        if change.notification is not None:
            channel = user_channel(change.notification.user_id)
            await self.publish(TASK_ASSIGNED, payload, channel=channel)
            await self.publish(
                NOTIFICATION_NEW,
                change.notification.model_dump(mode="json", by_alias=True),
                channel=channel,
            )

    async def task_deleted(self, task_id: str) -> None:
        await self.publish(TASK_DELETED, {"id": task_id})


class RedisEventBroadcaster(EventBroadcaster):
    """
    Shares one event stream between worker processes through Redis pub/sub.

    ``publish`` goes to Redis; a listener task in every worker delivers what
    it receives to its local sockets. If Redis is unreachable the event is
    delivered locally so single-worker setups keep working.
    """

    def __init__(self, manager: ConnectionManager, redis_dsn: str, channel: str):
        super().__init__(manager)
        self.redis_dsn = redis_dsn
        self.channel = channel
        self._redis: Redis | None = None
        self._listener: asyncio.Task | None = None

    async def start(self):
        try:
            self._redis = Redis.from_url(
                self.redis_dsn,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
            )
            await self._redis.ping()
            logger.info("Redis event relay connected channel=%s", self.channel)
        except RedisError as e:
            logger.error("Redis relay unavailable, delivering locally: %s", e)
            self._redis = None
            return
        self._listener = asyncio.create_task(self._listen())

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener
            self._listener = None
        if self._redis is not None:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error("Error closing Redis: %s", e)
            self._redis = None

    async def publish(self, event: str, data: Any = None, channel: str | None = None):
        envelope = {"event": event, "data": data, "channel": channel}
        if self._redis is None:
            await self.deliver(envelope)
            return
        try:
            await self._redis.publish(self.channel, json.dumps(envelope, default=str))
        except RedisError as e:
            logger.error("Redis PUBLISH error, delivering locally: %s", e)
            await self.deliver(envelope)

    async def _listen(self):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    envelope = json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning("Ignoring malformed relay message")
                    continue
                await self.deliver(envelope)
        except RedisError as e:
            logger.error("Redis relay listener stopped: %s", e)
        finally:
            with contextlib.suppress(RedisError):
                await pubsub.aclose()


def build_broadcaster(settings: Settings, manager: ConnectionManager) -> EventBroadcaster:
    if settings.redis_dsn:
        return RedisEventBroadcaster(manager, settings.redis_dsn, settings.redis_channel)
    return EventBroadcaster(manager)
