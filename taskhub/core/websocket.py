import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    """
    Registry of live sockets in this process.

    Every socket is in ``active_connections`` (broadcast audience) and in the
    private channel of the user it authenticated as.
    """

    def __init__(self):
        self.active_connections: set[WebSocket] = set()
        self.channels: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        self.active_connections.add(websocket)
        self.channels[user_channel(user_id)].add(websocket)
        logger.info("User %s connected (%d sockets)", user_id, len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)
        for name in [n for n, members in self.channels.items() if websocket in members]:
            self.channels[name].discard(websocket)
            if not self.channels[name]:
                del self.channels[name]

    def channel_size(self, channel: str) -> int:
        return len(self.channels.get(channel, ()))

    async def broadcast(self, message: dict):
        for connection in list(self.active_connections):
            await self._send(connection, message)

    async def send_to_channel(self, channel: str, message: dict):
        for connection in list(self.channels.get(channel, ())):
            await self._send(connection, message)

    async def _send(self, websocket: WebSocket, message: dict):
        try:
            await websocket.send_json(message)
        except Exception as e:
            # one dead socket must not stop delivery to the others
            logger.warning("Dropping socket after send failure: %s", e)
            self.disconnect(websocket)
