import inspect
import json
import logging
from typing import Any, Callable, Optional

import websockets

from taskhub.client.cache import ResourceCache

logger = logging.getLogger(__name__)

# Server event -> cache key prefixes to revalidate
EVENT_INVALIDATIONS: dict[str, tuple[str, ...]] = {
    "task:created": ("/tasks",),
    "task:updated": ("/tasks",),
    "task:deleted": ("/tasks",),
    "task:assigned": ("/tasks", "/notifications"),
    "notification:new": ("/notifications",),
}


class RealtimeListener:
    """
    Turns server events into cache invalidations.

    Events are signals only: nothing is merged into the cache, the affected
    keys are dropped and refetched on next read. Missed events are not
    replayed, so callers should refetch after reconnecting.
    """

    def __init__(
        self,
        cache: ResourceCache,
        url: str,
        on_event: Optional[Callable[[str, Any], Any]] = None,
    ):
        self.cache = cache
        self.url = url
        self.on_event = on_event

    async def handle(self, raw: str | bytes | dict) -> list[str]:
        """Apply one event frame; returns the invalidated cache keys."""
        if isinstance(raw, dict):
            message = raw
        else:
            try:
                message = json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed event frame")
                return []

        event = message.get("event") if isinstance(message, dict) else None
        prefixes = EVENT_INVALIDATIONS.get(event)
        if prefixes is None:
            logger.debug("Ignoring unknown event %r", event)
            return []

        dropped: list[str] = []
        for prefix in prefixes:
            dropped.extend(self.cache.invalidate_prefix(prefix))
        if self.on_event is not None:
            outcome = self.on_event(event, message.get("data"))
            if inspect.isawaitable(outcome):
                await outcome
        return dropped

    async def run(self):
        """Consume events until the server closes the connection."""
        async with websockets.connect(self.url) as ws:
            logger.info("Listening for live updates")
            async for raw in ws:
                await self.handle(raw)
